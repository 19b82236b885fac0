"""Ad surface location across the creative page's frame tree."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from playwright.async_api import Frame, Page

from .logging import jlog
from .playwright import element_is_visibly_displayed, iter_frames, safe_evaluate

AD_ROOT_SELECTORS = '#portrait-landscape-phone, .creative-sub-container, [id^="fletch-render-"]'
IMAGE_SELECTORS = (
    "img.landscape-image",
    "img#landscape-image",
    ".landscape-image img",
    'img[id*="landscape-image"]',
    'img[class*="landscape-image"]',
)
TITLE_SELECTORS = (
    "span.landscape-app-title",
    "span#landscape-app-title",
    ".landscape-app-title",
    '[id*="landscape-app-title"]',
    '[class*="landscape-app-title"]',
    ".landscape-title-bar span",
)
DESCRIPTION_SELECTORS = (
    "div.landscape-app-text",
    "div#landscape-app-text",
    ".landscape-app-text",
    '[id*="landscape-app-text"]',
    '[class*="landscape-app-text"]',
)
MIN_SURFACE_PX = 50

# Shared page-side helpers; every script that needs them starts with this prefix.
DOM_HELPERS_JS = """
const deepQueryAll = (root, selector) => {
  const out = [];
  const visit = (node) => {
    if (!node || !node.querySelectorAll) return;
    try { out.push(...node.querySelectorAll(selector)); } catch (e) { return; }
    for (const el of node.querySelectorAll('*')) {
      if (el.shadowRoot) visit(el.shadowRoot);
    }
  };
  visit(root);
  return out;
};
const deepQuery = (root, selectors) => {
  for (const sel of selectors) {
    const found = deepQueryAll(root, sel);
    if (found.length) return found[0];
  }
  return null;
};
const textOf = (el) => el ? (el.innerText || el.textContent || '').trim() : '';
const isShown = (el, minPx) => {
  if (!el) return false;
  const rect = el.getBoundingClientRect();
  if (rect.width < minPx || rect.height < minPx) return false;
  let node = el;
  while (node && node.nodeType === 1) {
    if (node.hidden || node.getAttribute('aria-hidden') === 'true') return false;
    const st = window.getComputedStyle(node);
    if (st.display === 'none' || st.visibility === 'hidden' || st.opacity === '0') return false;
    node = node.parentElement || (node.getRootNode && node.getRootNode().host) || null;
  }
  return true;
};
"""

PROBE_JS = (
    "(args) => {\n"
    + DOM_HELPERS_JS
    + """
  let roots = deepQueryAll(document, args.rootSelectors);
  if (!roots.length && document.body) roots = [document.body];
  return roots.map((root, index) => {
    const rect = root.getBoundingClientRect();
    const img = deepQuery(root, args.imageSelectors);
    const title = deepQuery(root, args.titleSelectors);
    const desc = deepQuery(root, args.descSelectors);
    return {
      index,
      width: Math.round(rect.width),
      height: Math.round(rect.height),
      visible: isShown(root, args.minPx),
      hasImage: !!img,
      imageSrc: img ? (img.currentSrc || img.src || '') : '',
      titleText: textOf(title),
      descText: textOf(desc),
    };
  });
}
"""
)


@dataclass(frozen=True)
class AdSurface:
    frame: Frame | None
    root_index: int
    width: int
    height: int
    visible: bool
    has_image: bool = False
    image_src: str = ""
    title_text: str = ""
    desc_text: str = ""

    @property
    def structure_valid(self) -> bool:
        """Image-ad template check: image, title and description all present with text."""

        return self.has_image and len(self.title_text.strip()) >= 2 and len(self.desc_text.strip()) >= 2


def surfaces_from_probe(frame: Frame | None, rows: list[dict[str, Any]] | None, frame_visible: bool = True) -> list[AdSurface]:
    out: list[AdSurface] = []
    for row in rows or []:
        out.append(
            AdSurface(
                frame=frame,
                root_index=int(row.get("index", 0)),
                width=int(row.get("width") or 0),
                height=int(row.get("height") or 0),
                visible=bool(row.get("visible")) and frame_visible,
                has_image=bool(row.get("hasImage")),
                image_src=row.get("imageSrc") or "",
                title_text=row.get("titleText") or "",
                desc_text=row.get("descText") or "",
            )
        )
    return out


def select_surface(candidates: list[AdSurface], require_structure: bool = False) -> AdSurface | None:
    """First visible candidate in document order, optionally requiring a valid image-ad structure."""

    for surface in candidates:
        if not surface.visible:
            continue
        if require_structure and not surface.structure_valid:
            continue
        return surface
    return None


async def _frame_is_displayed(page: Page, frame: Frame) -> bool:
    if frame is page.main_frame:
        return True
    try:
        element = await frame.frame_element()
    except Exception:
        return False
    return await element_is_visibly_displayed(element)


async def probe_surfaces(page: Page) -> list[AdSurface]:
    """Enumerate ad roots in every reachable frame, in document order."""

    args = {
        "rootSelectors": AD_ROOT_SELECTORS,
        "imageSelectors": list(IMAGE_SELECTORS),
        "titleSelectors": list(TITLE_SELECTORS),
        "descSelectors": list(DESCRIPTION_SELECTORS),
        "minPx": MIN_SURFACE_PX,
    }
    candidates: list[AdSurface] = []
    for frame in iter_frames(page):
        rows = await safe_evaluate(frame, PROBE_JS, args)
        if not rows:
            continue
        displayed = await _frame_is_displayed(page, frame)
        candidates.extend(surfaces_from_probe(frame, rows, frame_visible=displayed))
    return candidates


async def locate(page: Page, require_structure: bool = False) -> AdSurface | None:
    candidates = await probe_surfaces(page)
    surface = select_surface(candidates, require_structure=require_structure)
    jlog(
        "debug",
        event="surface_probe",
        candidates=len(candidates),
        visible=sum(1 for c in candidates if c.visible),
        structured=sum(1 for c in candidates if c.structure_valid),
        selected=bool(surface),
    )
    return surface


__all__ = [
    "AD_ROOT_SELECTORS",
    "AdSurface",
    "DESCRIPTION_SELECTORS",
    "DOM_HELPERS_JS",
    "IMAGE_SELECTORS",
    "TITLE_SELECTORS",
    "locate",
    "probe_surfaces",
    "select_surface",
    "surfaces_from_probe",
]
