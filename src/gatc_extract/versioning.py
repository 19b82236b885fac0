"""Extractor version strings stamped on every log record."""

from __future__ import annotations

import os
from importlib.metadata import PackageNotFoundError, version

DISTRIBUTION = "gatc-extract"


def package_version() -> str | None:
    try:
        return version(DISTRIBUTION)
    except PackageNotFoundError:
        return None


def get_extractor_version(script_name: str, script_version: str) -> str:
    """``<script>:<script version>[+<package version>]``, overridable via ``AD_EXTRACTOR_VERSION``."""

    override = os.getenv("AD_EXTRACTOR_VERSION")
    if override:
        return override
    base = f"{script_name}:{script_version}"
    pkg = package_version()
    return f"{base}+{pkg}" if pkg else base


__all__ = ["get_extractor_version", "package_version"]
