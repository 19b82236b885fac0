"""One extraction attempt: isolated context, navigation, block check, settle, extract."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable

from playwright.async_api import Browser, Page
from playwright.async_api import Error as PlaywrightError

from .blocking import classify
from .config import Settings
from .debug import dump_frame_inventory, ensure_debug_html
from .fingerprint import FingerprintProfile, apply_profile, generate_profile
from .gate import ResourceGate, VideoIdSlot
from .logging import rowlog
from .models import ExtractionRequest, ExtractionResult
from .playwright import cleanup_playwright, humanize, wait_frames_ready

NETWORK_IDLE_MAX_MS = 10000


class BrowserRestartRequired(RuntimeError):
    """Signal that the shared browser died and the session should relaunch it."""


@dataclass
class VisitContext:
    page: Page
    request: ExtractionRequest
    settings: Settings
    slot: VideoIdSlot
    profile: FingerprintProfile
    wait_scale: float = 1.0


FieldExtractor = Callable[[VisitContext], Awaitable[ExtractionResult]]


async def _settle(page: Page, settings: Settings, profile: FingerprintProfile, scale: float, rng: random.Random) -> None:
    base_ms = rng.uniform(settings.settle_min_ms, settings.settle_max_ms)
    await asyncio.sleep(base_ms * scale / 1000.0)
    await wait_frames_ready(page)
    await humanize(page, profile.viewport, rng)


async def visit(
    browser: Browser,
    request: ExtractionRequest,
    settings: Settings,
    extract_fields: FieldExtractor,
    *,
    gate: ResourceGate | None = None,
    rng: random.Random | None = None,
) -> ExtractionResult:
    """Run a single attempt for ``request`` in a fresh browser context."""

    rng = rng or random.Random()
    profile = generate_profile(rng)
    slot = VideoIdSlot()
    try:
        context = await browser.new_context(**profile.context_options())
    except PlaywrightError as exc:
        raise BrowserRestartRequired(str(exc)) from exc

    try:
        if settings.trace:
            try:
                await context.tracing.start(screenshots=True, snapshots=True)
            except Exception:
                pass
        await apply_profile(context, profile)
        await (gate or ResourceGate()).install(context, slot)
        page = await context.new_page()

        try:
            response = await page.goto(request.url, wait_until="load", timeout=settings.page_timeout_ms)
        except PlaywrightError as exc:
            rowlog("navigation_error", row_id=request.row_id, url=request.url, level="warning", attempt=request.attempt, error=str(exc))
            return ExtractionResult.error()
        try:
            await page.wait_for_load_state("networkidle", timeout=min(NETWORK_IDLE_MAX_MS, settings.page_timeout_ms))
        except PlaywrightError:
            pass

        verdict = classify(response.status if response else None, await page.content())
        if verdict.blocked:
            rowlog("blocked", row_id=request.row_id, url=request.url, level="warning", reason=verdict.reason)
            return ExtractionResult.blocked()

        scale = settings.retry_policy().wait_scale(request.attempt)
        await _settle(page, settings, profile, scale, rng)

        if settings.debug_html:
            await ensure_debug_html(page, request.row_id)
        if settings.debug_frames:
            rowlog("frame_inventory", row_id=request.row_id, url=request.url, frames=await dump_frame_inventory(page))

        return await extract_fields(VisitContext(page, request, settings, slot, profile, scale))
    except PlaywrightError as exc:
        if not browser.is_connected():
            raise BrowserRestartRequired(str(exc)) from exc
        rowlog("attempt_error", row_id=request.row_id, url=request.url, level="warning", attempt=request.attempt, error=str(exc))
        return ExtractionResult.error()
    finally:
        await cleanup_playwright(context, settings.trace, request.row_id)


__all__ = ["BrowserRestartRequired", "FieldExtractor", "VisitContext", "visit"]
