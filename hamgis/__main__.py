"""Module entry point: python -m hamgis ..."""

from __future__ import annotations

from hamgis.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
