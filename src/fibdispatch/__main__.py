"""Allow ``python -m fibdispatch``."""

from __future__ import annotations

from fibdispatch.cli.app import app

if __name__ == "__main__":
    app()
