"""Image-ad extraction pipeline exports."""

from __future__ import annotations

from .pipeline import Settings, get_extractor_version, parse_args, run

__all__ = ["Settings", "parse_args", "run", "get_extractor_version"]
