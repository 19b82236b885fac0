"""Playwright helpers shared by the extractors."""

from __future__ import annotations

import asyncio
import os
import random
from typing import Any, Iterator

from playwright.async_api import BrowserContext, ElementHandle, Frame, Page

from .debug import DEBUG_DIR, ensure_debug_dir


async def element_is_visibly_displayed(handle: ElementHandle | None) -> bool:
    if not handle:
        return False
    try:
        return await handle.evaluate(
            """
            (el) => {
                if (!el) return false;
                const rect = el.getBoundingClientRect();
                if (rect.width <= 1 || rect.height <= 1) return false;
                let node = el;
                while (node) {
                    if (node instanceof HTMLElement) {
                        if (node.hidden || node.getAttribute('aria-hidden') === 'true') {
                            return false;
                        }
                        const ns = window.getComputedStyle(node);
                        if (ns.display === 'none' || ns.visibility === 'hidden' || ns.opacity === '0') {
                            return false;
                        }
                    }
                    node = node.parentElement;
                }
                return true;
            }
            """
        )
    except Exception:
        return False


def iter_frames(page: Page) -> Iterator[Frame]:
    """Yield live frames depth-first in document order, main frame first."""

    stack = [page.main_frame]
    while stack:
        frame = stack.pop()
        if frame.is_detached():
            continue
        yield frame
        stack.extend(reversed(frame.child_frames))


async def safe_evaluate(frame: Frame, script: str, arg: Any = None, timeout_s: float = 5.0) -> Any:
    """Evaluate ``script`` in ``frame``; return ``None`` on detach, cross-origin or timeout."""

    try:
        return await asyncio.wait_for(frame.evaluate(script, arg), timeout=timeout_s)
    except Exception:
        return None


async def wait_frames_ready(page: Page, per_frame_ms: int = 3000, overall_ms: int = 10000) -> None:
    """Wait for creative iframes to reach ``DOMContentLoaded`` within a global bound."""

    async def _one(frame: Frame) -> None:
        try:
            await frame.wait_for_load_state("domcontentloaded", timeout=per_frame_ms)
        except Exception:
            pass

    frames = [f for f in iter_frames(page) if f is not page.main_frame]
    if not frames:
        return
    try:
        await asyncio.wait_for(asyncio.gather(*(_one(f) for f in frames)), timeout=overall_ms / 1000)
    except asyncio.TimeoutError:
        pass


async def humanize(page: Page, viewport: tuple[int, int], rng: random.Random | None = None) -> None:
    """A few mouse moves and a short scroll so the creative lazy-loads."""

    rng = rng or random.Random()
    width, height = viewport
    try:
        for _ in range(rng.randint(2, 4)):
            await page.mouse.move(rng.uniform(0, width), rng.uniform(0, height), steps=rng.randint(3, 8))
            await asyncio.sleep(rng.uniform(0.2, 0.5))
        await page.evaluate(
            """
            async () => {
                for (let i = 0; i < 3; i++) {
                    window.scrollBy(0, 150 + Math.random() * 100);
                    await new Promise(r => setTimeout(r, 200 + Math.random() * 150));
                }
                window.scrollBy(0, -100);
            }
            """
        )
    except Exception:
        pass


async def cleanup_playwright(context: BrowserContext | None, trace: bool, row_id: int | str) -> None:
    """Stop tracing (if enabled) and close the per-request context."""

    try:
        if trace and context:
            ensure_debug_dir()
            await context.tracing.stop(path=os.path.join(DEBUG_DIR, f"trace_{row_id}.zip"))
    except Exception:
        pass
    try:
        if context:
            await context.close()
    except Exception:
        pass


CHROMIUM_LAUNCH_ARGS = [
    "--autoplay-policy=no-user-gesture-required",
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-setuid-sandbox",
    "--disable-gpu",
    "--no-first-run",
]


__all__ = [
    "CHROMIUM_LAUNCH_ARGS",
    "cleanup_playwright",
    "element_is_visibly_displayed",
    "humanize",
    "iter_frames",
    "safe_evaluate",
    "wait_frames_ready",
]
