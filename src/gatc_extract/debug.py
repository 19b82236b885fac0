"""Debug artifact helpers shared by the extractors."""

from __future__ import annotations

import os
from typing import Any

from playwright.async_api import Page

from .logging import jlog

DEBUG_DIR = "media/debug"


def ensure_debug_dir() -> str:
    """Create the debug directory if it does not exist and return the path."""

    try:
        os.makedirs(DEBUG_DIR, exist_ok=True)
    except Exception:
        pass
    return DEBUG_DIR


async def ensure_debug_html(page: Page, row_id: int | str) -> None:
    """Persist the current page HTML for later debugging (best effort)."""

    try:
        ensure_debug_dir()
        html = await page.content()
        with open(os.path.join(DEBUG_DIR, f"page_{row_id}.html"), "w", encoding="utf-8") as f:
            f.write(html)
    except Exception as exc:  # pragma: no cover - logging only
        jlog("error", event="debug_save_html_error", row_id=row_id, error=str(exc))


async def dump_frame_inventory(page: Page) -> list[dict[str, Any]]:
    """Return a structured list describing all iframes on the page."""

    try:
        return await page.evaluate(
            """
            () => Array.from(document.querySelectorAll('iframe')).map(fr => {
              const rect = fr.getBoundingClientRect();
              return {
                id: fr.id || '',
                src: (fr.getAttribute('src') || '').slice(0, 200),
                rect: { x: rect.x, y: rect.y, width: rect.width, height: rect.height },
              };
            })
            """
        )
    except Exception:
        return []


__all__ = ["DEBUG_DIR", "dump_frame_inventory", "ensure_debug_dir", "ensure_debug_html"]
