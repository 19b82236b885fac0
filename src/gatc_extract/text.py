"""Text normalization for names scraped out of ad creatives."""

from __future__ import annotations

import re

INVISIBLE_RE = re.compile("[\u200b-\u200d\ufeff\u2066-\u2069]")
CLASS_TOKEN_RE = re.compile(r"\.[a-zA-Z][\w-]*")
CSS_DECL_RE = re.compile(r"[a-zA-Z-]+\s*:\s*[^;]+;")
PIXEL_RE = re.compile(r"\d+px")
STAR_RE = re.compile(r"\*+")
WS_RE = re.compile(r"\s+")
NAME_MARKER = "!@~!@~"

NAME_MIN_LEN = 2
NAME_MAX_LEN = 80
SUBTITLE_MAX_LEN = 200

ADVERTISER_BLACKLIST = ("ad details", "google ads", "transparency center", "about this ad")


def _strip_markup_noise(text: str) -> str:
    text = INVISIBLE_RE.sub("", text.strip())
    text = CLASS_TOKEN_RE.sub(" ", text)
    text = CSS_DECL_RE.sub(" ", text)
    text = PIXEL_RE.sub(" ", text)
    return STAR_RE.sub(" ", text)


def _looks_like_css(text: str) -> bool:
    lowered = text.lower()
    return bool(re.search(r":\s*\d", text)) or any(token in lowered for token in ("height", "width", "font"))


def clean_app_name(text: str | None) -> str | None:
    """Return a cleaned app name or ``None`` when the text is not a usable name."""

    if not text or not isinstance(text, str):
        return None
    cleaned = _strip_markup_noise(text)
    cleaned = cleaned.split(NAME_MARKER)[0]
    if "|" in cleaned:
        parts: list[str] = []
        for part in (p.strip() for p in cleaned.split("|")):
            if len(part) > NAME_MIN_LEN and part not in parts:
                parts.append(part)
        if parts:
            cleaned = parts[0]
    cleaned = WS_RE.sub(" ", cleaned).strip()
    if len(cleaned) < NAME_MIN_LEN or len(cleaned) > NAME_MAX_LEN:
        return None
    if re.fullmatch(r"[\d\s\W_]+", cleaned):
        return None
    if _looks_like_css(cleaned):
        return None
    return cleaned


def clean_text(text: str | None, max_len: int = SUBTITLE_MAX_LEN) -> str | None:
    """Whitespace/invisible-char cleanup with a length bound (subtitles, taglines)."""

    if not text or not isinstance(text, str):
        return None
    cleaned = WS_RE.sub(" ", INVISIBLE_RE.sub("", text)).strip()
    if len(cleaned) < NAME_MIN_LEN or len(cleaned) > max_len:
        return None
    return cleaned


def is_blacklisted_advertiser(text: str | None) -> bool:
    lowered = (text or "").lower()
    return any(word in lowered for word in ADVERTISER_BLACKLIST)


def choose_advertiser_name(candidates: list[str | None]) -> str | None:
    """First candidate that survives cleanup and is not page chrome."""

    for candidate in candidates:
        if not candidate:
            continue
        text = WS_RE.sub(" ", INVISIBLE_RE.sub("", candidate)).strip()
        if len(text) < NAME_MIN_LEN or len(text) > NAME_MAX_LEN:
            continue
        if is_blacklisted_advertiser(text):
            continue
        return text
    return None


def app_name_from_title(title: str | None) -> str | None:
    """Page-title fallback: ``"<name> - Google Play"`` style titles."""

    if not title or "google ads" in title.lower():
        return None
    head = re.split(r"\s+-\s+|\|", title)[0]
    return clean_app_name(head)


__all__ = [
    "ADVERTISER_BLACKLIST",
    "NAME_MAX_LEN",
    "SUBTITLE_MAX_LEN",
    "app_name_from_title",
    "choose_advertiser_name",
    "clean_app_name",
    "clean_text",
    "is_blacklisted_advertiser",
]
