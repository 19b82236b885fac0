"""Shared building blocks for the GATC app-ad and image-ad extractors."""

from .blocking import BlockVerdict, classify
from .debug import dump_frame_inventory, ensure_debug_dir, ensure_debug_html
from .logging import jlog, rowlog
from .models import ExtractionMode, ExtractionRequest, ExtractionResult, FieldValue, Outcome
from .playwright import CHROMIUM_LAUNCH_ARGS, cleanup_playwright, element_is_visibly_displayed, iter_frames
from .rowstore import CellUpdate, MemoryRowStore, RowStore, SheetsRowStore
from .text import clean_app_name
from .urls import extract_store_link, is_store_link, is_valid_video_id
from .versioning import get_extractor_version

__all__ = [
    "BlockVerdict",
    "CellUpdate",
    "CHROMIUM_LAUNCH_ARGS",
    "ExtractionMode",
    "ExtractionRequest",
    "ExtractionResult",
    "FieldValue",
    "MemoryRowStore",
    "Outcome",
    "RowStore",
    "SheetsRowStore",
    "classify",
    "clean_app_name",
    "cleanup_playwright",
    "dump_frame_inventory",
    "element_is_visibly_displayed",
    "ensure_debug_dir",
    "ensure_debug_html",
    "extract_store_link",
    "get_extractor_version",
    "is_store_link",
    "is_valid_video_id",
    "iter_frames",
    "jlog",
    "rowlog",
]
