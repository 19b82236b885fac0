import asyncio
import json
import logging

from gatc_extract.logging import current_context, jlog, logging_context, rowlog, set_global_context
from gatc_extract.versioning import get_extractor_version


def test_jlog_merges_global_scoped_and_call_fields(caplog):
    set_global_context(app="gatc_extract")
    with caplog.at_level(logging.INFO, logger="extractor"):
        with logging_context(script="app", extra=None):
            jlog("info", event="run_config", script="override")
        rowlog("row_start", row_id=7, url="https://ad", level="warning")
    first, second = (json.loads(r.getMessage()) for r in caplog.records)
    assert first["app"] == "gatc_extract"
    assert first["script"] == "override"
    assert "extra" not in first
    assert second["row_id"] == 7
    assert second["level"] == "warning"
    assert "script" not in second


def test_logging_context_is_task_local():
    async def worker(name):
        with logging_context(worker=name):
            await asyncio.sleep(0)
            return current_context()["worker"]

    async def scenario():
        return await asyncio.gather(worker("a"), worker("b"))

    assert asyncio.run(scenario()) == ["a", "b"]


def test_extractor_version_env_override(monkeypatch):
    monkeypatch.setenv("AD_EXTRACTOR_VERSION", "pinned")
    assert get_extractor_version("app", "1") == "pinned"
    monkeypatch.delenv("AD_EXTRACTOR_VERSION")
    assert get_extractor_version("app", "1").startswith("app:1")
