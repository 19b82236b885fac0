"""App-install ad extraction: advertiser, app name, store link and video id.

Sheet layout: A advertiser, B creative URL, C store link, D app name,
E video id, F ad format, M last-updated timestamp.  A row is pending when it
has a URL and is missing its store link or app name, or when it has a valid
store link but no video id.  Metadata and the video id are collected in the
same page visit.
"""

from __future__ import annotations

import asyncio
from typing import Sequence

from playwright.async_api import async_playwright

from ..batch import ResultWriter, chromium_launcher, run_batch
from ..config import Settings, parse_settings
from ..extractors import classify_ad_format, extract_advertiser_name, extract_app_identity
from ..interaction import capture_video_id
from ..logging import jlog, rowlog
from ..models import NOT_FOUND, SKIP, BatchSummary, ExtractionMode, ExtractionRequest, ExtractionResult, FieldValue, Outcome
from ..retry import app_request_complete
from ..rowstore import CellUpdate, MemoryRowStore, RowStore, SheetsRowStore, iter_rows, sheet_timestamp
from ..urls import is_store_link
from ..versioning import get_extractor_version as resolve_version
from ..visit import VisitContext, visit

SCRIPT_NAME = "app"
SCRIPT_VERSION = "2026-10-17.1"
READ_COLUMNS = ("A", "E")
AD_FORMAT_VIDEO = "Video Ad"
AD_FORMAT_OTHER = "Text/Image Ad"


def get_extractor_version() -> str:
    return resolve_version(SCRIPT_NAME, SCRIPT_VERSION)


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    return parse_settings(ExtractionMode.APP, argv)


# ============================
# Sheet rows
# ============================


def request_from_row(row_id: int, cells: list[str]) -> ExtractionRequest | None:
    """Build the request for one sheet row, or ``None`` when the row is complete."""

    cells = list(cells) + [""] * (5 - len(cells))
    url, store_link, app_name, video_id = cells[1], cells[2], cells[3], cells[4]
    if not url:
        return None
    needs_metadata = not store_link or not app_name
    needs_video_id = is_store_link(store_link) and not video_id
    if not (needs_metadata or needs_video_id):
        return None
    return ExtractionRequest(
        url=url,
        row_id=row_id,
        mode=ExtractionMode.APP,
        known_store_link=store_link or None,
        needs_metadata=needs_metadata,
        needs_video_id=needs_video_id,
    )


def pending_requests(store: RowStore, settings: Settings) -> list[ExtractionRequest]:
    out: list[ExtractionRequest] = []
    for row_id, cells in iter_rows(store, *READ_COLUMNS, batch_size=settings.sheet_batch_size):
        request = request_from_row(row_id, cells)
        if request is not None:
            out.append(request)
        if settings.limit and len(out) >= settings.limit:
            break
    return out


def result_updates(request: ExtractionRequest, result: ExtractionResult, timestamp: str) -> list[CellUpdate]:
    """Cells to write for one finished row; SKIP and BLOCKED fields are left untouched."""

    if result.is_blocked:
        return []
    updates: list[CellUpdate] = []
    for column, value in (
        ("A", result.advertiser_name),
        ("C", result.store_link),
        ("D", result.app_name),
        ("E", result.video_id),
    ):
        if value.outcome in (Outcome.SKIP, Outcome.BLOCKED):
            continue
        if column == "A" and not value.is_found:
            continue
        updates.append(CellUpdate(column, request.row_id, value.cell()))
    if result.app_name.outcome is not Outcome.SKIP:
        updates.append(CellUpdate("F", request.row_id, AD_FORMAT_VIDEO if result.is_video_ad else AD_FORMAT_OTHER))
    updates.append(CellUpdate("M", request.row_id, timestamp))
    return updates


# ============================
# Field extraction
# ============================


async def extract_app_fields(vc: VisitContext) -> ExtractionResult:
    """Metadata (when needed) then the video id (when a valid store link is known or found)."""

    request = vc.request
    page = vc.page
    advertiser = SKIP
    app_name = SKIP
    store_link = SKIP
    is_video = False

    if request.needs_metadata:
        name = await extract_advertiser_name(page)
        advertiser = FieldValue.of(name)
        identity = await extract_app_identity(page, blacklist=(name or ""))
        app_name = FieldValue.of(identity.app_name)
        store_link = FieldValue.of(identity.store_link)
        is_video = await classify_ad_format(page)

    link = store_link.value if store_link.is_found else request.known_store_link
    video_id = SKIP
    if is_store_link(link) and (request.needs_video_id or request.needs_metadata):
        wait_s = vc.settings.post_click_wait_ms * vc.wait_scale / 1000.0
        captured = await capture_video_id(page, vc.slot, wait_s)
        video_id = FieldValue.of(captured) if captured else NOT_FOUND
        rowlog("video_id", row_id=request.row_id, url=request.url, found=bool(captured))

    return ExtractionResult(
        advertiser_name=advertiser,
        app_name=app_name,
        store_link=store_link,
        video_id=video_id,
        is_video_ad=is_video or video_id.is_found,
    )


# ============================
# Entrypoint
# ============================


async def run(settings: Settings, *, store: RowStore | None = None, launch=None) -> BatchSummary:
    """Execute the app-ad pipeline for the supplied settings."""

    jlog("info", event="run_config", **settings.log_safe())
    if settings.url:
        store = MemoryRowStore({2: ["", settings.url]})
    else:
        store = store or SheetsRowStore(settings.spreadsheet_id, settings.sheet_name, settings.credentials_path)

    requests = await asyncio.to_thread(pending_requests, store, settings)
    jlog(
        "info",
        event="rows_pending",
        total=len(requests),
        needs_metadata=sum(1 for r in requests if r.needs_metadata),
        needs_video_id=sum(1 for r in requests if r.needs_video_id),
    )
    if not requests:
        return BatchSummary()

    timestamp_tz = settings.timestamp_tz
    writer = ResultWriter(
        store,
        lambda req, res: result_updates(req, res, sheet_timestamp(timestamp_tz)),
        flush_every=settings.concurrency,
        dry_run=settings.dry_run and not settings.url,
    )

    async def extract(browser, request: ExtractionRequest) -> ExtractionResult:
        return await visit(browser, request, settings, extract_app_fields)

    async with async_playwright() as pw:
        summary = await run_batch(
            requests,
            settings,
            launch=launch or chromium_launcher(pw, settings),
            extract=extract,
            predicate=app_request_complete,
            writer=writer,
        )
    if settings.url and isinstance(store, MemoryRowStore):
        jlog("info", event="single_url_result", url=settings.url, row=store.rows.get(2))
    return summary


__all__ = [
    "extract_app_fields",
    "get_extractor_version",
    "parse_args",
    "pending_requests",
    "request_from_row",
    "result_updates",
    "run",
]
