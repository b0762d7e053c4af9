from __future__ import annotations

import runpy
from pathlib import Path


def test_module_entrypoint_exposes_run() -> None:
    entrypoint = Path(__file__).resolve().parents[1] / "src" / "devicepulse" / "__main__.py"
    namespace = runpy.run_path(str(entrypoint), run_name="devicepulse_entrypoint_test")

    assert callable(namespace["run"])
