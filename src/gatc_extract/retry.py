"""Per-request retry loop with backoff and completion predicates."""

from __future__ import annotations

import asyncio
import enum
import random
from dataclasses import dataclass
from typing import Awaitable, Callable

from .logging import rowlog
from .models import ExtractionRequest, ExtractionResult, Outcome, applicable_fields

AttemptFn = Callable[[ExtractionRequest], Awaitable[ExtractionResult]]
Predicate = Callable[[ExtractionRequest, ExtractionResult], bool]


class AttemptState(str, enum.Enum):
    PENDING = "pending"
    ATTEMPTING = "attempting"
    SUCCESS = "success"
    BLOCKED = "blocked"
    EXHAUSTED = "exhausted"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 4
    delay_min_s: float = 2.0
    delay_max_s: float = 4.0
    backoff: str = "linear"
    wait_multiplier: float = 1.25

    def wait_scale(self, attempt: int) -> float:
        """Multiplier applied to in-attempt waits (settle, post-click) on attempt ``attempt``."""

        return self.wait_multiplier ** max(0, attempt - 1)


def backoff_delay(policy: RetryPolicy, attempt: int, rng: random.Random | None = None) -> float:
    """Delay before retrying after failed attempt number ``attempt`` (1-based)."""

    rng = rng or random.Random()
    base = rng.uniform(policy.delay_min_s, policy.delay_max_s)
    if policy.backoff == "exponential":
        return base * (2 ** max(0, attempt - 1))
    return base * max(1, attempt)


@dataclass(frozen=True)
class RetryOutcome:
    state: AttemptState
    result: ExtractionResult
    attempts: int


def metadata_complete(result: ExtractionResult) -> bool:
    return result.app_name.is_found or result.store_link.is_found


def video_complete(result: ExtractionResult) -> bool:
    return result.video_id.is_found


def image_complete(result: ExtractionResult) -> bool:
    return result.app_name.is_found and result.image_url.is_found and result.app_subtitle.is_found


def app_request_complete(request: ExtractionRequest, result: ExtractionResult) -> bool:
    if request.needs_metadata and not metadata_complete(result):
        return False
    has_link = result.store_link.is_found or request.has_known_store_link
    if has_link and (request.needs_video_id or request.needs_metadata):
        return video_complete(result)
    return True


def image_request_complete(request: ExtractionRequest, result: ExtractionResult) -> bool:
    return image_complete(result)


def _all_applicable_skipped(request: ExtractionRequest, result: ExtractionResult) -> bool:
    if result.is_skipped:
        return True
    names = applicable_fields(request)
    fields = result.fields()
    return bool(names) and all(fields[n].outcome is Outcome.SKIP for n in names)


class RetryController:
    """Run attempts for one request until success, block, exhaustion or abandonment."""

    def __init__(
        self,
        attempt_fn: AttemptFn,
        predicate: Predicate,
        policy: RetryPolicy,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.attempt_fn = attempt_fn
        self.predicate = predicate
        self.policy = policy
        self.sleep = sleep
        self.rng = rng or random.Random()
        self.state = AttemptState.PENDING

    async def run(self, request: ExtractionRequest, cancel: asyncio.Event | None = None) -> RetryOutcome:
        attempt = 0
        while attempt < self.policy.max_attempts:
            if cancel is not None and cancel.is_set():
                self.state = AttemptState.ABANDONED
                return RetryOutcome(self.state, ExtractionResult.skipped(), attempt)
            attempt += 1
            self.state = AttemptState.ATTEMPTING
            result = await self.attempt_fn(request.for_attempt(attempt))
            rowlog(
                "attempt_result",
                row_id=request.row_id,
                url=request.url,
                attempt=attempt,
                **result.as_row(),
            )
            if result.is_blocked:
                self.state = AttemptState.BLOCKED
                return RetryOutcome(self.state, ExtractionResult.blocked(), attempt)
            if not result.is_error and (_all_applicable_skipped(request, result) or self.predicate(request, result)):
                self.state = AttemptState.SUCCESS
                return RetryOutcome(self.state, result, attempt)
            if attempt >= self.policy.max_attempts:
                break
            delay = backoff_delay(self.policy, attempt, self.rng)
            rowlog(
                "retry_backoff",
                row_id=request.row_id,
                url=request.url,
                attempt=attempt,
                delay_s=round(delay, 3),
            )
            await self.sleep(delay)

        self.state = AttemptState.EXHAUSTED
        return RetryOutcome(self.state, ExtractionResult.exhausted(request), attempt)


__all__ = [
    "AttemptState",
    "RetryController",
    "RetryOutcome",
    "RetryPolicy",
    "app_request_complete",
    "backoff_delay",
    "image_complete",
    "image_request_complete",
    "metadata_complete",
    "video_complete",
]
