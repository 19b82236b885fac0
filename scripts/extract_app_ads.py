#!/usr/bin/env python3
"""CLI shim for the APP-install ad extractor.

Delegates to the ``gatc_extract.app`` package so scheduled workflows can run
``python scripts/extract_app_ads.py`` without installing a console script.
"""
from __future__ import annotations

import asyncio

from gatc_extract.app import Settings, get_extractor_version, parse_args, run
from gatc_extract.logging import configure_logging, logging_context, set_global_context

SCRIPT_NAME = "app"


def main() -> None:
    """Parse CLI arguments and execute the APP-install extraction pipeline."""
    configure_logging()
    set_global_context(app="gatc_extract", pipeline=SCRIPT_NAME)
    version = get_extractor_version()
    with logging_context(script=SCRIPT_NAME, extractor_version=version):
        settings: Settings = parse_args()
        asyncio.run(run(settings))


if __name__ == "__main__":
    main()
