import asyncio
import random

from gatc_extract.app.pipeline import result_updates
from gatc_extract.batch import BatchRunner, ResultWriter
from gatc_extract.config import parse_settings
from gatc_extract.models import ExtractionMode, ExtractionRequest, ExtractionResult, FieldValue
from gatc_extract.retry import app_request_complete
from gatc_extract.rowstore import MemoryRowStore
from gatc_extract.visit import BrowserRestartRequired

PLAY = "https://play.google.com/store/apps/details?id=com.example.app"


class _Browser:
    def __init__(self, proxy):
        self.proxy = proxy
        self.closed = False

    async def close(self):
        self.closed = True


class _Launcher:
    def __init__(self):
        self.browsers = []

    async def __call__(self, proxy):
        browser = _Browser(proxy)
        self.browsers.append(browser)
        return browser


class _FlakyLauncher(_Launcher):
    """Launches the first `healthy` browsers, then fails every launch."""

    def __init__(self, healthy):
        super().__init__()
        self.healthy = healthy
        self.failures = 0

    async def __call__(self, proxy):
        if len(self.browsers) >= self.healthy:
            self.failures += 1
            raise RuntimeError("launch failed")
        return await super().__call__(proxy)


class _Restart:
    def __init__(self):
        self.calls = []

    def __call__(self, repository, token, event_type, *, reason):
        self.calls.append((repository, event_type, reason))
        return True


async def _no_sleep(delay):
    return None


def _settings(*argv, environ=None):
    env = {"GITHUB_REPOSITORY": "acme/ads", "GH_TOKEN": "t", "PROXIES": "http://p1:1;http://p2:2"}
    env.update(environ or {})
    return parse_settings(ExtractionMode.APP, ["--concurrency", "2", *argv], environ=env)


def _requests(n):
    return [
        ExtractionRequest(url=f"https://adstransparency.google.com/ad/{i}", row_id=i, mode=ExtractionMode.APP)
        for i in range(2, 2 + n)
    ]


def _store(n):
    return MemoryRowStore({i: ["", f"https://adstransparency.google.com/ad/{i}"] for i in range(2, 2 + n)})


def _runner(settings, store, extract, flush_every=1, **kw):
    writer = ResultWriter(store, lambda req, res: result_updates(req, res, "17/10/2026, 10:00:00 am"), flush_every=flush_every)
    kw.setdefault("launch", _Launcher())
    kw.setdefault("restart", _Restart())
    runner = BatchRunner(
        settings,
        extract=extract,
        predicate=app_request_complete,
        writer=writer,
        sleep=_no_sleep,
        rng=random.Random(3),
        **kw,
    )
    return runner, kw["launch"], kw["restart"]


def test_blocked_sessions_stop_run_and_request_restart_without_writing():
    settings = _settings("--max-proxy-attempts", "3")
    store = _store(2)
    calls = []

    async def extract(browser, request):
        calls.append(request.row_id)
        return ExtractionResult.blocked()

    runner, launcher, restart = _runner(settings, store, extract)
    summary = asyncio.run(runner.run(_requests(2)))

    assert summary.blocked_sessions == 3
    assert summary.stop_reason == "proxy_attempts_exhausted"
    assert summary.restart_triggered
    assert restart.calls == [("acme/ads", "app_data_trigger", "proxy_attempts_exhausted")]
    assert summary.written == 0
    assert summary.pending == 2
    assert store.writes == []
    assert len(launcher.browsers) == 3
    assert all(b.closed for b in launcher.browsers)
    # Each blocked session cancels the rest of its queue; no per-row retries.
    assert len(calls) <= 6


def test_successful_rows_are_written_by_row_id():
    settings = _settings()
    store = _store(3)

    async def extract(browser, request):
        return ExtractionResult(
            advertiser_name=FieldValue.found("King"),
            app_name=FieldValue.found(f"App {request.row_id}"),
            store_link=FieldValue.found(PLAY),
            video_id=FieldValue.found("dQw4w9WgXcQ"),
        )

    runner, _, restart = _runner(settings, store, extract)
    summary = asyncio.run(runner.run(_requests(3)))

    assert summary.processed == 3
    assert summary.succeeded == 3
    assert summary.written == 3
    assert summary.stop_reason is None
    assert restart.calls == []
    for row in (2, 3, 4):
        assert store.cell("D", row) == f"App {row}"
        assert store.cell("C", row) == PLAY
        assert store.cell("E", row) == "dQw4w9WgXcQ"
        assert store.cell("M", row) == "17/10/2026, 10:00:00 am"


def test_block_then_recovery_requeues_rows_for_next_session():
    settings = _settings("--max-proxy-attempts", "3")
    store = _store(2)
    sessions = {"blocked": False}

    async def extract(browser, request):
        if not sessions["blocked"]:
            sessions["blocked"] = True
            return ExtractionResult.blocked()
        return ExtractionResult(app_name=FieldValue.found("Royal Match"), store_link=FieldValue.of(None), video_id=FieldValue.of(None))

    runner, launcher, _ = _runner(settings, store, extract)
    summary = asyncio.run(runner.run(_requests(2)))

    assert summary.blocked_sessions == 1
    assert summary.stop_reason is None
    assert summary.written == 2
    assert len(launcher.browsers) == 2
    assert store.cell("D", 2) == "Royal Match"
    assert store.cell("D", 3) == "Royal Match"


def test_dead_browser_is_relaunched_without_consuming_an_attempt():
    settings = _settings()
    store = _store(1)
    seen = []

    async def extract(browser, request):
        seen.append(request.attempt)
        if len(seen) == 1:
            raise BrowserRestartRequired("Target closed")
        return ExtractionResult(app_name=FieldValue.found("Royal Match"), store_link=FieldValue.of(None))

    runner, launcher, _ = _runner(settings, store, extract)
    summary = asyncio.run(runner.run(_requests(1)))

    assert summary.succeeded == 1
    assert seen == [1, 1]
    assert len(launcher.browsers) == 2


def test_expired_budget_stops_before_launching_and_requests_restart():
    settings = _settings("--max-runtime-minutes", "1")
    store = _store(2)
    ticks = iter([0.0] + [3600.0] * 20)

    async def extract(browser, request):
        raise AssertionError("no visit expected")

    runner, launcher, restart = _runner(settings, store, extract, clock=lambda: next(ticks))
    summary = asyncio.run(runner.run(_requests(2)))

    assert summary.stop_reason == "session_budget"
    assert summary.pending == 2
    assert launcher.browsers == []
    assert restart.calls[0][2] == "session_budget"


def test_dry_run_writer_skips_store():
    store = _store(1)
    writer = ResultWriter(store, lambda req, res: result_updates(req, res, "ts"), flush_every=5, dry_run=True)

    async def scenario():
        await writer.add(_requests(1)[0], ExtractionResult(app_name=FieldValue.found("Royal Match")))
        await writer.add(_requests(1)[0], ExtractionResult.blocked())
        await writer.flush()

    asyncio.run(scenario())
    assert store.writes == []
    assert writer.rows_written == 0


def test_failed_relaunch_keeps_buffered_rows_and_finishes_run():
    settings = _settings()
    store = _store(2)

    async def extract(browser, request):
        if request.row_id == 3:
            raise BrowserRestartRequired("Target closed")
        return ExtractionResult(app_name=FieldValue.found("Royal Match"), store_link=FieldValue.of(None))

    runner, launcher, restart = _runner(settings, store, extract, flush_every=2, launch=_FlakyLauncher(healthy=1))
    summary = asyncio.run(runner.run(_requests(2)))

    assert launcher.failures >= 2
    assert summary.processed == 2
    assert summary.succeeded == 1
    assert summary.written == 2
    assert store.cell("D", 2) == "Royal Match"
    assert store.cell("D", 3) == "NOT_FOUND"
    assert restart.calls == []


def test_session_launch_failure_stops_run_and_requests_restart():
    settings = _settings()
    store = _store(2)

    async def extract(browser, request):
        raise AssertionError("no visit expected")

    runner, launcher, restart = _runner(settings, store, extract, launch=_FlakyLauncher(healthy=0))
    summary = asyncio.run(runner.run(_requests(2)))

    assert launcher.failures == 2
    assert summary.stop_reason == "browser_launch_failed"
    assert summary.pending == 2
    assert store.writes == []
    assert restart.calls == [("acme/ads", "app_data_trigger", "browser_launch_failed")]
