"""Field extractors: advertiser, app identity, ad format and image-ad fields.

Page-side scripts only collect raw candidates (texts and hrefs); cleaning,
validation and the choice between candidates happen here in Python so the
rules are testable without a browser.  Every extractor is local-failure: a
frame that cannot be evaluated contributes nothing, and a field that is not
found comes back as ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from playwright.async_api import Page

from .gate import AD_IMAGE_ALLOWLIST
from .playwright import iter_frames, safe_evaluate
from .surfaces import AD_ROOT_SELECTORS, DESCRIPTION_SELECTORS, DOM_HELPERS_JS, IMAGE_SELECTORS, TITLE_SELECTORS, AdSurface
from .text import app_name_from_title, choose_advertiser_name, clean_app_name, clean_text
from .urls import extract_store_link

ADVERTISER_SELECTORS = (
    ".advertiser-name",
    ".advertiser-name-container",
    "h1",
    ".creative-details-page-header-text",
    ".ad-details-heading",
)
APP_NAME_SELECTORS = (
    'a[data-asoch-targets*="ochAppName"]',
    'a[data-asoch-targets*="appname" i]',
    'a[data-asoch-targets*="rrappname" i]',
    'a[class*="short-app-name"]',
    ".short-app-name a",
)
INSTALL_SELECTORS = (
    'a[data-asoch-targets*="ochButton"]',
    'a[data-asoch-targets*="Install" i]',
    'a[aria-label*="Install" i]',
)
FALLBACK_NAME_SELECTORS = ('[role="heading"]', 'div[class*="app-name"]', ".app-title")
IDENTITY_ROOT_SELECTOR = "#portrait-landscape-phone"
MIN_FRAME_BODY_PX = 50
MIN_VIDEO_PX = 10

ADVERTISER_JS = """
(selectors) => selectors.map(sel => {
  const el = document.querySelector(sel);
  return el ? (el.innerText || el.textContent || '').trim() : null;
})
"""

IDENTITY_JS = (
    "(args) => {\n"
    + DOM_HELPERS_JS
    + """
  const body = document.body;
  if (!body) return { hidden: true };
  const rect = body.getBoundingClientRect();
  if (rect.width < args.minPx || rect.height < args.minPx) return { hidden: true };
  const root = deepQueryAll(document, args.rootSelector)[0] || body;
  const collect = (selectors) => {
    const out = [];
    for (const sel of selectors) {
      for (const el of deepQueryAll(root, sel)) {
        out.push({ text: el.innerText || el.textContent || '', href: el.href || el.getAttribute('href') || '' });
      }
    }
    return out;
  };
  return {
    hidden: false,
    names: collect(args.nameSelectors),
    installs: collect(args.installSelectors).map(c => c.href),
    fallbacks: collect(args.fallbackSelectors).map(c => c.text),
  };
}
"""
)

FORMAT_JS = """
(minPx) => {
  const videos = Array.from(document.querySelectorAll('video'));
  const hasVideo = videos.some(v => v.offsetWidth > minPx && v.offsetHeight > minPx);
  const label = !!(document.body && (document.body.innerText || '').includes('Format: Video'));
  return { hasVideo, label };
}
"""

IMAGE_FIELDS_JS = (
    "(args) => {\n"
    + DOM_HELPERS_JS
    + """
  let roots = deepQueryAll(document, args.rootSelectors);
  if (!roots.length && document.body) roots = [document.body];
  const root = roots[args.rootIndex];
  if (!root) return null;
  const srcs = [];
  for (const sel of args.imageSelectors) {
    for (const img of deepQueryAll(root, sel)) {
      const src = img.currentSrc || img.src || '';
      if (src && !srcs.includes(src)) srcs.push(src);
    }
  }
  return {
    srcs,
    title: textOf(deepQuery(root, args.titleSelectors)),
    desc: textOf(deepQuery(root, args.descSelectors)),
  };
}
"""
)


@dataclass
class AppIdentity:
    app_name: str | None = None
    store_link: str | None = None

    @property
    def complete(self) -> bool:
        return bool(self.app_name and self.store_link)


@dataclass
class FrameCandidates:
    hidden: bool = False
    names: list[dict[str, str]] = field(default_factory=list)
    installs: list[str] = field(default_factory=list)
    fallbacks: list[str] = field(default_factory=list)

    @classmethod
    def from_probe(cls, data: dict[str, Any] | None) -> "FrameCandidates":
        if not data:
            return cls(hidden=True)
        return cls(
            hidden=bool(data.get("hidden")),
            names=list(data.get("names") or []),
            installs=[h for h in data.get("installs") or [] if h],
            fallbacks=[t for t in data.get("fallbacks") or [] if t],
        )


def _usable_name(raw: str | None, blacklist: str) -> str | None:
    name = clean_app_name(raw)
    if not name or (blacklist and name.lower() == blacklist):
        return None
    return name


def identity_from_frame(candidates: FrameCandidates, blacklist: str = "") -> AppIdentity:
    """Apply the per-frame precedence: named anchors, then install buttons, then generic headings."""

    identity = AppIdentity()
    if candidates.hidden:
        return identity
    for candidate in candidates.names:
        name = _usable_name(candidate.get("text"), blacklist)
        if not name:
            continue
        link = extract_store_link(candidate.get("href"))
        if link:
            return AppIdentity(name, link)
        if not identity.app_name:
            identity.app_name = name

    if identity.app_name:
        for href in candidates.installs:
            link = extract_store_link(href)
            if link:
                identity.store_link = link
                break
        return identity

    for text in candidates.fallbacks:
        name = _usable_name(text, blacklist)
        if name:
            identity.app_name = name
            break
    return identity


def choose_app_identity(frames: list[FrameCandidates], blacklist: str = "") -> AppIdentity:
    """First frame with both name and link wins; otherwise the first name seen."""

    chosen = AppIdentity()
    for candidates in frames:
        identity = identity_from_frame(candidates, blacklist)
        if identity.complete:
            return identity
        if identity.app_name and not chosen.app_name:
            chosen = AppIdentity(identity.app_name, identity.store_link)
    return chosen


def choose_image_url(srcs: list[str]) -> str | None:
    """Prefer a URL on the ad-image host, else the first absolute http(s) URL."""

    http = [s for s in srcs if s and s.startswith("http")]
    for src in http:
        if any(host in src for host in AD_IMAGE_ALLOWLIST):
            return src
    return http[0] if http else None


async def extract_advertiser_name(page: Page) -> str | None:
    """Advertiser name from the top-level document only."""

    texts = await safe_evaluate(page.main_frame, ADVERTISER_JS, list(ADVERTISER_SELECTORS))
    return choose_advertiser_name(list(texts or []))


async def collect_identity_candidates(page: Page) -> list[FrameCandidates]:
    args = {
        "minPx": MIN_FRAME_BODY_PX,
        "rootSelector": IDENTITY_ROOT_SELECTOR,
        "nameSelectors": list(APP_NAME_SELECTORS),
        "installSelectors": list(INSTALL_SELECTORS),
        "fallbackSelectors": list(FALLBACK_NAME_SELECTORS),
    }
    out: list[FrameCandidates] = []
    for frame in iter_frames(page):
        data = await safe_evaluate(frame, IDENTITY_JS, args)
        out.append(FrameCandidates.from_probe(data))
    return out


async def extract_app_identity(page: Page, blacklist: str = "") -> AppIdentity:
    """App name and store link from the creative frames, with a page-title fallback for the name."""

    identity = choose_app_identity(await collect_identity_candidates(page), blacklist.lower())
    if not identity.app_name:
        try:
            identity.app_name = app_name_from_title(await page.title())
        except Exception:
            pass
    return identity


async def classify_ad_format(page: Page) -> bool:
    """True when the creative renders as a video ad."""

    for frame in iter_frames(page):
        data = await safe_evaluate(frame, FORMAT_JS, MIN_VIDEO_PX)
        if not data:
            continue
        if data.get("hasVideo"):
            return True
        if frame is page.main_frame and data.get("label"):
            return True
    return False


@dataclass
class ImageFields:
    app_name: str | None = None
    image_url: str | None = None
    subtitle: str | None = None


async def collect_image_fields(surface: AdSurface) -> ImageFields:
    """Read the image-ad template fields from the selected surface root.

    Probed title and description win; the re-read only fills fields the probe
    left empty.
    """

    data = None
    if surface.frame is not None:
        data = await safe_evaluate(
            surface.frame,
            IMAGE_FIELDS_JS,
            {
                "rootSelectors": AD_ROOT_SELECTORS,
                "rootIndex": surface.root_index,
                "imageSelectors": list(IMAGE_SELECTORS),
                "titleSelectors": list(TITLE_SELECTORS),
                "descSelectors": list(DESCRIPTION_SELECTORS),
            },
            timeout_s=6.0,
        )
    data = data or {}
    srcs = list(data.get("srcs") or [])
    if surface.image_src and surface.image_src not in srcs:
        srcs.insert(0, surface.image_src)
    return ImageFields(
        app_name=clean_app_name(surface.title_text or data.get("title")),
        image_url=choose_image_url(srcs),
        subtitle=clean_text(surface.desc_text or data.get("desc")),
    )


__all__ = [
    "ADVERTISER_SELECTORS",
    "APP_NAME_SELECTORS",
    "AppIdentity",
    "FALLBACK_NAME_SELECTORS",
    "FrameCandidates",
    "INSTALL_SELECTORS",
    "ImageFields",
    "choose_app_identity",
    "choose_image_url",
    "classify_ad_format",
    "collect_identity_candidates",
    "collect_image_fields",
    "extract_advertiser_name",
    "extract_app_identity",
    "identity_from_frame",
]
