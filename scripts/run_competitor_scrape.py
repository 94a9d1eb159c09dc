"""
Run competitor scraping from CLI.
"""

from __future__ import annotations

from competitor_watch.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
