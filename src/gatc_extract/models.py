"""Request and result types shared by the extraction pipelines."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace

from .urls import is_store_link, is_valid_video_id


class ExtractionMode(str, enum.Enum):
    APP = "app"
    IMAGE = "image"


class Outcome(str, enum.Enum):
    """Per-field outcome. Every non-FOUND member doubles as its output sentinel."""

    FOUND = "FOUND"
    NOT_FOUND = "NOT_FOUND"
    SKIP = "SKIP"
    BLOCKED = "BLOCKED"
    ERROR = "ERROR"


@dataclass(frozen=True)
class FieldValue:
    outcome: Outcome
    value: str | None = None

    @classmethod
    def found(cls, value: str) -> "FieldValue":
        return cls(Outcome.FOUND, value)

    @classmethod
    def of(cls, value: str | None) -> "FieldValue":
        """FOUND for a non-empty value, NOT_FOUND otherwise."""

        value = (value or "").strip()
        return cls(Outcome.FOUND, value) if value else NOT_FOUND

    @property
    def is_found(self) -> bool:
        return self.outcome is Outcome.FOUND

    def cell(self) -> str:
        """Render the value as written to an output cell."""

        if self.outcome is Outcome.FOUND:
            return self.value or ""
        return self.outcome.value


NOT_FOUND = FieldValue(Outcome.NOT_FOUND)
SKIP = FieldValue(Outcome.SKIP)
BLOCKED = FieldValue(Outcome.BLOCKED)
ERROR = FieldValue(Outcome.ERROR)


@dataclass(frozen=True)
class ExtractionRequest:
    url: str
    row_id: int
    mode: ExtractionMode
    known_store_link: str | None = None
    needs_metadata: bool = True
    needs_video_id: bool = False
    attempt: int = 1

    def for_attempt(self, attempt: int) -> "ExtractionRequest":
        return replace(self, attempt=attempt)

    @property
    def has_known_store_link(self) -> bool:
        return is_store_link(self.known_store_link)


RESULT_FIELDS = ("advertiser_name", "app_name", "store_link", "video_id", "image_url", "app_subtitle")


@dataclass(frozen=True)
class ExtractionResult:
    advertiser_name: FieldValue = SKIP
    app_name: FieldValue = SKIP
    store_link: FieldValue = SKIP
    video_id: FieldValue = SKIP
    image_url: FieldValue = SKIP
    app_subtitle: FieldValue = SKIP
    is_video_ad: bool = False

    def __post_init__(self) -> None:
        if self.store_link.is_found and not is_store_link(self.store_link.value):
            object.__setattr__(self, "store_link", NOT_FOUND)
        if self.video_id.is_found and not is_valid_video_id(self.video_id.value):
            object.__setattr__(self, "video_id", NOT_FOUND)

    @classmethod
    def _uniform(cls, value: FieldValue) -> "ExtractionResult":
        return cls(**{name: value for name in RESULT_FIELDS})

    @classmethod
    def blocked(cls) -> "ExtractionResult":
        return cls._uniform(BLOCKED)

    @classmethod
    def error(cls) -> "ExtractionResult":
        return cls._uniform(ERROR)

    @classmethod
    def skipped(cls) -> "ExtractionResult":
        return cls._uniform(SKIP)

    @classmethod
    def exhausted(cls, request: ExtractionRequest) -> "ExtractionResult":
        """Final result after the attempt cap: applicable fields become NOT_FOUND, the rest SKIP."""

        applicable = applicable_fields(request)
        return cls(**{name: NOT_FOUND if name in applicable else SKIP for name in RESULT_FIELDS})

    def fields(self) -> dict[str, FieldValue]:
        return {name: getattr(self, name) for name in RESULT_FIELDS}

    @property
    def is_blocked(self) -> bool:
        return any(v.outcome is Outcome.BLOCKED for v in self.fields().values())

    @property
    def is_error(self) -> bool:
        return any(v.outcome is Outcome.ERROR for v in self.fields().values())

    @property
    def is_skipped(self) -> bool:
        return all(v.outcome is Outcome.SKIP for v in self.fields().values())

    def as_row(self) -> dict[str, str]:
        row = {name: value.cell() for name, value in self.fields().items()}
        row["is_video_ad"] = "TRUE" if self.is_video_ad else "FALSE"
        return row


def applicable_fields(request: ExtractionRequest) -> frozenset[str]:
    """Names of the result fields a request asks the extractor to fill."""

    names: set[str] = set()
    if request.mode is ExtractionMode.IMAGE:
        names.update({"advertiser_name", "app_name", "store_link", "image_url", "app_subtitle"})
        return frozenset(names)
    if request.needs_metadata:
        names.update({"advertiser_name", "app_name", "store_link"})
    if request.needs_video_id or request.has_known_store_link:
        names.add("video_id")
    return frozenset(names)


@dataclass
class BatchSummary:
    processed: int = 0
    succeeded: int = 0
    exhausted: int = 0
    blocked_sessions: int = 0
    written: int = 0
    pending: int = 0
    restart_triggered: bool = False
    stop_reason: str | None = None
    outcomes: dict[int, str] = field(default_factory=dict)


__all__ = [
    "BLOCKED",
    "BatchSummary",
    "ERROR",
    "ExtractionMode",
    "ExtractionRequest",
    "ExtractionResult",
    "FieldValue",
    "NOT_FOUND",
    "Outcome",
    "RESULT_FIELDS",
    "SKIP",
    "applicable_fields",
]
