#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
show_catalog.py: print the live gallery catalog (all configured backends).

Usage (from repo root):
  python scripts/show_catalog.py                    # newest 20, compact table
  python scripts/show_catalog.py -n 100             # show 100 rows
  python scripts/show_catalog.py --folder trips     # one sub-folder on every backend
  python scripts/show_catalog.py --recursive        # descend into sub-folders
  python scripts/show_catalog.py --tsv              # tab-separated output
  python scripts/show_catalog.py --config /path/to/gallerist.toml

Notes:
  - Reads the same gallerist.toml / environment as the server.
  - Backends that cannot be reached are logged and skipped, like the gallery page.
"""

import argparse
import asyncio
import logging
from pathlib import Path

from gallerist.adapters.registry import build_adapters
from gallerist.core.config import load_settings
from gallerist.core.logging import setup_logging
from gallerist.services.catalog import build_catalog
from gallerist.utils.render import date_label, human_bytes

HEADERS = ["backend", "kind", "size", "uploaded", "url"]


def shorten(s: str, max_len: int = 60) -> str:
    if len(s) <= max_len:
        return s
    keep = max_len - 1
    head = keep // 2
    tail = keep - head
    return s[:head] + "…" + s[-tail:]


def to_row(item) -> dict:
    return {
        "backend":  item.source_backend,
        "kind":     item.kind,
        "size":     human_bytes(item.size),
        "uploaded": date_label(item),
        "url":      item.url,
    }


def print_rows(rows, tsv: bool) -> None:
    if not rows:
        print("No media found."); return
    if tsv:
        print("\t".join(HEADERS))
        for r in rows:
            print("\t".join(r[h] for h in HEADERS))
        return
    rows = [{**r, "url": shorten(r["url"])} for r in rows]
    col_widths = [max(len(h), *(len(r[h]) for r in rows)) for h in HEADERS]
    sep = "  "
    header_line = sep.join(h.ljust(w) for h, w in zip(HEADERS, col_widths))
    print(header_line); print("-" * len(header_line))
    for r in rows:
        print(sep.join(r[h].ljust(w) for h, w in zip(HEADERS, col_widths)))


def main():
    ap = argparse.ArgumentParser(description="Show the current gallery catalog, newest first.")
    ap.add_argument("-n", "--limit", type=int, default=20, help="How many rows to show (default: 20, 0 = all)")
    ap.add_argument("--folder", default="", help="Sub-folder to list on every backend")
    ap.add_argument("--recursive", action="store_true", help="Descend into sub-folders")
    ap.add_argument("--config", help="Path to gallerist.toml (default: normal search)")
    ap.add_argument("--tsv", action="store_true", help="Tab-separated output")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log backend warnings to the console")
    args = ap.parse_args()

    settings = load_settings(Path(args.config).expanduser() if args.config else None)
    logger = setup_logging(settings.logging)
    if not args.verbose:
        logger.setLevel(logging.ERROR)

    adapters = build_adapters(settings)
    if not adapters:
        print("No backends configured.")
        return

    items = asyncio.run(build_catalog(
        adapters.values(),
        folder=args.folder,
        recursive=args.recursive,
        extensions=settings.catalog.extensions,
    ))
    if args.limit > 0:
        items = items[: args.limit]
    print_rows([to_row(i) for i in items], tsv=args.tsv)


if __name__ == "__main__":
    main()
