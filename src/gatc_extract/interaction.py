"""Play-affordance discovery and trusted click dispatch."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from playwright.async_api import Frame, Page

from .gate import VideoIdSlot
from .logging import jlog
from .playwright import iter_frames, safe_evaluate
from .surfaces import IMAGE_SELECTORS, AdSurface

PLAY_SELECTORS = (".play-button", ".ytp-large-play-button", ".ytp-play-button", "video", '[aria-label*="Play" i]')
MIN_TARGET_PX = 5

FIND_PLAY_JS = """
(args) => {
  const search = (root) => {
    for (const sel of args.selectors) {
      let el = null;
      try { el = root.querySelector(sel); } catch (e) { el = null; }
      if (el) {
        const r = el.getBoundingClientRect();
        if (r.width > args.minPx && r.height > args.minPx) {
          return { x: r.left + r.width / 2, y: r.top + r.height / 2, selector: sel };
        }
      }
    }
    for (const el of root.querySelectorAll('*')) {
      if (el.shadowRoot) {
        const hit = search(el.shadowRoot);
        if (hit) return hit;
      }
    }
    return null;
  };
  return search(document);
}
"""

IFRAME_CENTER_JS = """
() => {
  for (const fr of document.querySelectorAll('iframe')) {
    const r = fr.getBoundingClientRect();
    if (r.width > 0 && r.height > 0) return { x: r.left + r.width / 2, y: r.top + r.height / 2 };
  }
  return null;
}
"""


@dataclass(frozen=True)
class PlayTarget:
    found: bool
    x: float = 0.0
    y: float = 0.0
    source: str = ""


NO_TARGET = PlayTarget(False)


async def _frame_offset(frame: Frame) -> tuple[float, float] | None:
    """Top-left of ``frame`` in page coordinates, or ``None`` when it is not laid out."""

    try:
        element = await frame.frame_element()
        box = await element.bounding_box()
    except Exception:
        return None
    if not box or box["width"] <= 0 or box["height"] <= 0:
        return None
    return box["x"], box["y"]


async def reveal(page: Page) -> PlayTarget:
    """Find a clickable play affordance, searching creative frames before the host document."""

    args = {"selectors": list(PLAY_SELECTORS), "minPx": MIN_TARGET_PX}
    main = page.main_frame
    for frame in [f for f in iter_frames(page) if f is not main] + [main]:
        hit = await safe_evaluate(frame, FIND_PLAY_JS, args)
        if not hit:
            continue
        if frame is main:
            return PlayTarget(True, hit["x"], hit["y"], f"main:{hit['selector']}")
        offset = await _frame_offset(frame)
        if offset is None:
            continue
        return PlayTarget(True, offset[0] + hit["x"], offset[1] + hit["y"], f"frame:{hit['selector']}")

    center = await safe_evaluate(main, IFRAME_CENTER_JS)
    if center:
        return PlayTarget(True, center["x"], center["y"], "iframe_center")
    return NO_TARGET


async def trigger(page: Page, target: PlayTarget) -> bool:
    """Dispatch a trusted move/press/release sequence at ``target`` through CDP."""

    if not target.found:
        return False
    try:
        client = await page.context.new_cdp_session(page)
        try:
            await client.send("Input.dispatchMouseEvent", {"type": "mouseMoved", "x": target.x, "y": target.y})
            await asyncio.sleep(0.1)
            pressed = {"x": target.x, "y": target.y, "button": "left", "clickCount": 1}
            await client.send("Input.dispatchMouseEvent", {"type": "mousePressed", **pressed})
            await asyncio.sleep(0.08)
            await client.send("Input.dispatchMouseEvent", {"type": "mouseReleased", **pressed})
        finally:
            try:
                await client.detach()
            except Exception:
                pass
    except Exception as exc:
        jlog("info", event="play_click_failed", source=target.source, error=str(exc))
        return False
    return True


async def capture_video_id(page: Page, slot: VideoIdSlot, wait_s: float) -> str | None:
    """Return the video id seen in traffic, clicking play first when autoplay produced none."""

    if slot.value:
        return slot.value
    target = await reveal(page)
    if not target.found:
        jlog("info", event="play_target_not_found")
        return None
    if not await trigger(page, target):
        return None
    return await slot.wait(wait_s)


async def hover_image(surface: AdSurface) -> bool:
    """Hover the image-ad image so overlay text renders before field collection."""

    if surface.frame is None:
        return False
    try:
        for selector in IMAGE_SELECTORS:
            handle = await surface.frame.query_selector(selector)
            if handle is None:
                continue
            await handle.scroll_into_view_if_needed(timeout=3000)
            await handle.hover(timeout=3000)
            await asyncio.sleep(0.5)
            return True
    except Exception:
        return False
    return False


__all__ = ["NO_TARGET", "PLAY_SELECTORS", "PlayTarget", "capture_video_id", "hover_image", "reveal", "trigger"]
