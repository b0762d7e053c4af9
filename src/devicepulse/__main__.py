"""Module entrypoint for `python -m devicepulse`."""

from devicepulse.cli import run

if __name__ == "__main__":
    raise SystemExit(run())
