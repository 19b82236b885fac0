"""Detection of rate-limit and bot-challenge pages."""

from __future__ import annotations

from dataclasses import dataclass

BLOCK_MARKERS = (
    "our systems have detected unusual traffic",
    "too many requests",
    "captcha",
    "g-recaptcha",
    "verify you are human",
    "af-error-container",
    "error 429",
)


@dataclass(frozen=True)
class BlockVerdict:
    blocked: bool
    reason: str | None = None


NOT_BLOCKED = BlockVerdict(False)


def classify(status: int | None, html: str | None) -> BlockVerdict:
    """Classify a loaded page from its HTTP status and document HTML."""

    if status == 429:
        return BlockVerdict(True, "http_429")
    lowered = (html or "").lower()
    for marker in BLOCK_MARKERS:
        if marker in lowered:
            return BlockVerdict(True, marker)
    return NOT_BLOCKED


__all__ = ["BLOCK_MARKERS", "BlockVerdict", "NOT_BLOCKED", "classify"]
