"""Browser sessions, the worker pool, proxy rotation and result write-back."""

from __future__ import annotations

import asyncio
import random
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from playwright.async_api import Browser, Playwright

from .config import Settings
from .logging import jlog, rowlog
from .models import BatchSummary, ExtractionRequest, ExtractionResult
from .playwright import CHROMIUM_LAUNCH_ARGS
from .restart import trigger_self_restart
from .retry import AttemptState, Predicate, RetryController
from .rowstore import CellUpdate, RowStore
from .urls import proxy_label, proxy_settings
from .visit import BrowserRestartRequired

LaunchFn = Callable[[str | None], Awaitable[Browser]]
ExtractFn = Callable[[Browser, ExtractionRequest], Awaitable[ExtractionResult]]
UpdatesFn = Callable[[ExtractionRequest, ExtractionResult], list[CellUpdate]]
RestartFn = Callable[..., bool]
SleepFn = Callable[[float], Awaitable[None]]

LAUNCH_RETRY_DELAY_S = 5.0
MAX_BROWSER_RESTARTS_PER_SESSION = 3


def chromium_launcher(pw: Playwright, settings: Settings) -> LaunchFn:
    async def launch(proxy: str | None) -> Browser:
        return await pw.chromium.launch(
            headless=not settings.headed,
            args=CHROMIUM_LAUNCH_ARGS,
            proxy=proxy_settings(proxy),
        )

    return launch


class ResultWriter:
    """Buffer results and write them back in groups, keyed by explicit row id."""

    def __init__(self, store: RowStore, to_updates: UpdatesFn, *, flush_every: int = 8, dry_run: bool = False) -> None:
        self.store = store
        self.to_updates = to_updates
        self.flush_every = max(1, flush_every)
        self.dry_run = dry_run
        self._buffer: list[tuple[ExtractionRequest, ExtractionResult]] = []
        self._lock = asyncio.Lock()
        self.rows_written = 0

    async def add(self, request: ExtractionRequest, result: ExtractionResult) -> None:
        if result.is_blocked:
            # Blocked rows stay pending for the next run.
            return
        async with self._lock:
            self._buffer.append((request, result))
            if len(self._buffer) < self.flush_every:
                return
            batch, self._buffer = self._buffer, []
        await self._write(batch)

    async def flush(self) -> None:
        async with self._lock:
            batch, self._buffer = self._buffer, []
        await self._write(batch)

    async def _write(self, batch: list[tuple[ExtractionRequest, ExtractionResult]]) -> None:
        if not batch:
            return
        updates: list[CellUpdate] = []
        for request, result in batch:
            updates.extend(self.to_updates(request, result))
        if self.dry_run:
            jlog("info", event="results_dry_run", rows=len(batch), cells=len(updates))
            return
        try:
            await asyncio.to_thread(self.store.write, updates)
        except Exception as exc:
            jlog("error", event="results_write_failed", rows=len(batch), error=str(exc))
            return
        self.rows_written += len(batch)
        jlog("info", event="results_written", rows=len(batch), cells=len(updates))


@dataclass
class SessionOutcome:
    blocked: bool = False
    budget_expired: bool = False
    requeue: list[ExtractionRequest] = field(default_factory=list)


class BatchRunner:
    def __init__(
        self,
        settings: Settings,
        *,
        launch: LaunchFn,
        extract: ExtractFn,
        predicate: Predicate,
        writer: ResultWriter,
        sleep: SleepFn = asyncio.sleep,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
        restart: RestartFn = trigger_self_restart,
    ) -> None:
        self.settings = settings
        self.launch = launch
        self.extract = extract
        self.predicate = predicate
        self.writer = writer
        self.sleep = sleep
        self.rng = rng or random.Random()
        self.clock = clock
        self.restart = restart
        self.policy = settings.retry_policy()
        self.summary = BatchSummary()
        self._started = clock()
        self._consecutive_successes = 0

    def budget_expired(self) -> bool:
        return self.clock() - self._started > self.settings.max_runtime_minutes * 60

    def _uniform_ms(self, lo: int, hi: int) -> float:
        return self.rng.uniform(lo, hi) / 1000.0

    async def _launch(self, proxy: str | None) -> Browser:
        try:
            return await self.launch(proxy)
        except Exception as exc:
            jlog("error", event="browser_launch_failed", proxy=proxy_label(proxy), error=str(exc))
            await self.sleep(LAUNCH_RETRY_DELAY_S)
            return await self.launch(proxy)

    async def run(self, requests: list[ExtractionRequest]) -> BatchSummary:
        pending = deque(requests)
        per_proxy_blocks: dict[str, int] = {}
        s = self.settings

        try:
            await self._run_sessions(pending, per_proxy_blocks)
        except Exception as exc:
            jlog("error", event="run_error", error=str(exc), pending=len(pending))
            self.summary.stop_reason = self.summary.stop_reason or "run_error"

        await self.writer.flush()
        self.summary.written = self.writer.rows_written
        self.summary.pending = len(pending)
        if self.summary.stop_reason:
            jlog("warning", event="run_stopped", reason=self.summary.stop_reason, pending=len(pending), proxy_blocks=per_proxy_blocks)
            self.summary.restart_triggered = await asyncio.to_thread(
                self.restart,
                s.github_repository,
                s.gh_token,
                s.restart_event_type,
                reason=self.summary.stop_reason,
            )
        jlog("info", event="run_summary", **{k: v for k, v in vars(self.summary).items() if k != "outcomes"})
        return self.summary

    async def _run_sessions(self, pending: deque[ExtractionRequest], per_proxy_blocks: dict[str, int]) -> None:
        consecutive_blocks = 0
        s = self.settings

        while pending:
            if self.budget_expired():
                self.summary.stop_reason = "session_budget"
                return
            proxy = self.rng.choice(s.proxies) if s.proxies else None
            size = min(s.pages_per_browser, len(pending))
            items = [pending.popleft() for _ in range(size)]
            jlog("info", event="session_start", proxy=proxy_label(proxy), items=size, remaining=len(pending))

            try:
                browser = await self._launch(proxy)
            except Exception as exc:
                jlog("error", event="session_launch_failed", proxy=proxy_label(proxy), error=str(exc))
                pending.extendleft(reversed(items))
                self.summary.stop_reason = "browser_launch_failed"
                return
            try:
                outcome = await self._run_session(browser, items, proxy)
            finally:
                try:
                    await browser.close()
                except Exception:
                    pass
            pending.extendleft(reversed(outcome.requeue))

            if outcome.blocked:
                consecutive_blocks += 1
                self.summary.blocked_sessions += 1
                label = proxy_label(proxy)
                per_proxy_blocks[label] = per_proxy_blocks.get(label, 0) + 1
                jlog(
                    "warning",
                    event="session_blocked",
                    proxy=label,
                    consecutive=consecutive_blocks,
                    max_proxy_attempts=s.max_proxy_attempts,
                    requeued=len(outcome.requeue),
                )
                if consecutive_blocks >= s.max_proxy_attempts:
                    self.summary.stop_reason = "proxy_attempts_exhausted"
                    return
                await self.sleep(self._uniform_ms(s.proxy_retry_delay_min_ms, s.proxy_retry_delay_max_ms))
            else:
                consecutive_blocks = 0
            if outcome.budget_expired:
                self.summary.stop_reason = "session_budget"
                return

    async def _run_session(self, browser: Browser, items: list[ExtractionRequest], proxy: str | None) -> SessionOutcome:
        s = self.settings
        outcome = SessionOutcome()
        cancel = asyncio.Event()
        holder = {"browser": browser, "restarts": 0}
        restart_lock = asyncio.Lock()

        async def attempt(request: ExtractionRequest) -> ExtractionResult:
            while True:
                current = holder["browser"]
                try:
                    return await self.extract(current, request)
                except BrowserRestartRequired as exc:
                    async with restart_lock:
                        if holder["browser"] is current:
                            if holder["restarts"] >= MAX_BROWSER_RESTARTS_PER_SESSION:
                                return ExtractionResult.error()
                            holder["restarts"] += 1
                            try:
                                await current.close()
                            except Exception:
                                pass
                            try:
                                holder["browser"] = await self._launch(proxy)
                            except Exception as launch_exc:
                                rowlog("browser_relaunch_failed", row_id=request.row_id, url=request.url, level="error", error=str(launch_exc))
                                return ExtractionResult.error()
                            rowlog("browser_restarted", row_id=request.row_id, url=request.url, level="warning", reason=str(exc))
                    # retry without consuming an attempt

        queue: asyncio.Queue = asyncio.Queue()
        for item in items:
            queue.put_nowait(item)
        for _ in range(s.concurrency):
            queue.put_nowait(None)

        async def worker(index: int) -> None:
            if index:
                await self.sleep(self._uniform_ms(s.page_load_delay_min_ms, s.page_load_delay_max_ms) * index)
            while True:
                request = await queue.get()
                if request is None:
                    queue.task_done()
                    break
                if cancel.is_set():
                    outcome.requeue.append(request)
                    queue.task_done()
                    continue
                if self.budget_expired():
                    outcome.budget_expired = True
                    outcome.requeue.append(request)
                    queue.task_done()
                    continue
                rowlog("row_start", row_id=request.row_id, url=request.url, needs_metadata=request.needs_metadata, needs_video_id=request.needs_video_id)
                controller = RetryController(attempt, self.predicate, self.policy, sleep=self.sleep, rng=self.rng)
                retried = await controller.run(request, cancel)
                if retried.state in (AttemptState.BLOCKED, AttemptState.ABANDONED):
                    if retried.state is AttemptState.BLOCKED:
                        outcome.blocked = True
                        cancel.set()
                        self._consecutive_successes = 0
                    outcome.requeue.append(request)
                    queue.task_done()
                    continue
                self.summary.processed += 1
                self.summary.outcomes[request.row_id] = retried.state.value
                if retried.state is AttemptState.SUCCESS:
                    self.summary.succeeded += 1
                    self._consecutive_successes += 1
                else:
                    self.summary.exhausted += 1
                await self.writer.add(request, retried.result)
                queue.task_done()
                if not cancel.is_set():
                    # Pace shortens by 5% per consecutive success, down to 70%.
                    factor = max(0.7, 1 - self._consecutive_successes * 0.05)
                    await self.sleep(self._uniform_ms(s.batch_delay_min_ms, s.batch_delay_max_ms) * factor)

        await asyncio.gather(*(worker(i) for i in range(s.concurrency)))
        if holder["browser"] is not browser:
            try:
                await holder["browser"].close()
            except Exception:
                pass
        return outcome


async def run_batch(requests: list[ExtractionRequest], settings: Settings, **kwargs) -> BatchSummary:
    """Process ``requests`` across as many browser sessions as needed."""

    return await BatchRunner(settings, **kwargs).run(requests)


__all__ = ["BatchRunner", "ResultWriter", "SessionOutcome", "chromium_launcher", "run_batch"]
