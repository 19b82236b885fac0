"""Image-ad extraction: app name, image URL and subtitle from the landscape template.

Sheet layout: A advertiser, B creative URL, C store link, D app name,
E image URL, F subtitle, M last-updated timestamp.  Rows whose store link is
already a Play Store link are done; any other row with a missing C, D, E or F
is pending.  Creatives that do not render the image-ad template (image, title
and description) are reported as ``SKIP`` rather than retried.
"""

from __future__ import annotations

import asyncio
from typing import Sequence

from playwright.async_api import async_playwright

from ..batch import ResultWriter, chromium_launcher, run_batch
from ..config import Settings, parse_settings
from ..extractors import ImageFields, collect_image_fields, extract_advertiser_name, extract_app_identity
from ..interaction import hover_image
from ..logging import jlog, rowlog
from ..models import BatchSummary, ExtractionMode, ExtractionRequest, ExtractionResult, FieldValue, Outcome
from ..retry import image_request_complete
from ..rowstore import CellUpdate, MemoryRowStore, RowStore, SheetsRowStore, iter_rows, sheet_timestamp
from ..surfaces import AdSurface, locate
from ..urls import is_play_store_link
from ..versioning import get_extractor_version as resolve_version
from ..visit import VisitContext, visit

SCRIPT_NAME = "image"
SCRIPT_VERSION = "2026-10-17.1"
READ_COLUMNS = ("A", "F")
LOCATE_PASSES = 3
LOCATE_RETRY_DELAY_S = 1.5


def get_extractor_version() -> str:
    return resolve_version(SCRIPT_NAME, SCRIPT_VERSION)


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    return parse_settings(ExtractionMode.IMAGE, argv)


# ============================
# Sheet rows
# ============================


def request_from_row(row_id: int, cells: list[str]) -> ExtractionRequest | None:
    cells = list(cells) + [""] * (6 - len(cells))
    url, store_link, app_name, image_url, subtitle = cells[1], cells[2], cells[3], cells[4], cells[5]
    if not url or is_play_store_link(store_link):
        return None
    if store_link and app_name and image_url and subtitle:
        return None
    return ExtractionRequest(
        url=url,
        row_id=row_id,
        mode=ExtractionMode.IMAGE,
        known_store_link=store_link or None,
        needs_metadata=True,
        needs_video_id=False,
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
    if result.is_blocked:
        return []
    row = request.row_id
    updates: list[CellUpdate] = []
    if result.advertiser_name.is_found:
        updates.append(CellUpdate("A", row, result.advertiser_name.cell()))
    if result.store_link.is_found:
        updates.append(CellUpdate("C", row, result.store_link.cell()))
    if result.app_name.outcome is not Outcome.SKIP:
        updates.append(CellUpdate("D", row, result.app_name.cell()))
    if result.image_url.is_found:
        updates.append(CellUpdate("E", row, result.image_url.cell()))
    elif result.video_id.is_found:
        updates.append(CellUpdate("E", row, result.video_id.cell()))
    else:
        updates.append(CellUpdate("E", row, Outcome.NOT_FOUND.value))
    updates.append(CellUpdate("F", row, result.app_subtitle.cell()))
    updates.append(CellUpdate("M", row, timestamp))
    return updates


# ============================
# Field extraction
# ============================


async def locate_image_surface(vc: VisitContext) -> AdSurface | None:
    """Up to ``LOCATE_PASSES`` probes for a visible, structurally valid image-ad surface."""

    for attempt in range(LOCATE_PASSES):
        if attempt:
            await asyncio.sleep(LOCATE_RETRY_DELAY_S)
        surface = await locate(vc.page, require_structure=True)
        if surface is not None:
            return surface
    return None


def _merge_fields(first: ImageFields, second: ImageFields) -> ImageFields:
    return ImageFields(
        app_name=first.app_name or second.app_name,
        image_url=first.image_url or second.image_url,
        subtitle=first.subtitle or second.subtitle,
    )


async def extract_image_fields(vc: VisitContext) -> ExtractionResult:
    request = vc.request
    surface = await locate_image_surface(vc)
    if surface is None:
        rowlog("not_image_ad", row_id=request.row_id, url=request.url)
        return ExtractionResult.skipped()

    await hover_image(surface)
    fields = await collect_image_fields(surface)
    if not (fields.app_name and fields.image_url and fields.subtitle):
        await asyncio.sleep(0.5)
        fields = _merge_fields(fields, await collect_image_fields(surface))

    advertiser = await extract_advertiser_name(vc.page)
    identity = await extract_app_identity(vc.page, blacklist=(advertiser or ""))
    return ExtractionResult(
        advertiser_name=FieldValue.of(advertiser),
        app_name=FieldValue.of(fields.app_name or identity.app_name),
        store_link=FieldValue.of(identity.store_link),
        image_url=FieldValue.of(fields.image_url),
        app_subtitle=FieldValue.of(fields.subtitle),
    )


# ============================
# Entrypoint
# ============================


async def run(settings: Settings, *, store: RowStore | None = None, launch=None) -> BatchSummary:
    """Execute the image-ad pipeline for the supplied settings."""

    jlog("info", event="run_config", **settings.log_safe())
    if settings.url:
        store = MemoryRowStore({2: ["", settings.url]})
    else:
        store = store or SheetsRowStore(settings.spreadsheet_id, settings.sheet_name, settings.credentials_path)

    requests = await asyncio.to_thread(pending_requests, store, settings)
    jlog("info", event="rows_pending", total=len(requests))
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
        return await visit(browser, request, settings, extract_image_fields)

    async with async_playwright() as pw:
        summary = await run_batch(
            requests,
            settings,
            launch=launch or chromium_launcher(pw, settings),
            extract=extract,
            predicate=image_request_complete,
            writer=writer,
        )
    if settings.url and isinstance(store, MemoryRowStore):
        jlog("info", event="single_url_result", url=settings.url, row=store.rows.get(2))
    return summary


__all__ = [
    "extract_image_fields",
    "get_extractor_version",
    "locate_image_surface",
    "parse_args",
    "pending_requests",
    "request_from_row",
    "result_updates",
    "run",
]
