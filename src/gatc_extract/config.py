"""Runtime settings: per-mode defaults, environment overrides and CLI flags."""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, fields
from typing import Mapping, Sequence

from .logging import jlog
from .models import ExtractionMode
from .retry import RetryPolicy

DEFAULT_SPREADSHEET_ID = "your-spreadsheet-id"
DEFAULT_CREDENTIALS_PATH = "./credentials.json"
DEFAULT_TIMESTAMP_TZ = "Asia/Karachi"
DEFAULT_MAX_RUNTIME_MINUTES = 330

MODE_DEFAULTS: dict[ExtractionMode, dict[str, object]] = {
    ExtractionMode.APP: {
        "sheet_name": "Sheet1",
        "concurrency": 8,
        "max_retries": 4,
        "retry_delay_min_ms": 2000,
        "retry_delay_max_ms": 4000,
        "backoff": "linear",
        "wait_multiplier": 1.25,
        "settle_min_ms": 2500,
        "settle_max_ms": 4500,
        "post_click_wait_ms": 6000,
        "batch_delay_min_ms": 3500,
        "batch_delay_max_ms": 7000,
        "page_load_delay_min_ms": 500,
        "page_load_delay_max_ms": 1500,
        "proxy_retry_delay_min_ms": 30000,
        "proxy_retry_delay_max_ms": 90000,
        "pages_per_browser": 40,
        "restart_event_type": "app_data_trigger",
    },
    ExtractionMode.IMAGE: {
        "sheet_name": "Test",
        "concurrency": 5,
        "max_retries": 3,
        "retry_delay_min_ms": 3000,
        "retry_delay_max_ms": 6000,
        "backoff": "exponential",
        "wait_multiplier": 1.5,
        "settle_min_ms": 5000,
        "settle_max_ms": 8000,
        "post_click_wait_ms": 6000,
        "batch_delay_min_ms": 8000,
        "batch_delay_max_ms": 15000,
        "page_load_delay_min_ms": 2000,
        "page_load_delay_max_ms": 4000,
        "proxy_retry_delay_min_ms": 25000,
        "proxy_retry_delay_max_ms": 75000,
        "pages_per_browser": 30,
        "restart_event_type": "image_ads_trigger",
    },
}

# Environment variable backing each integer/float setting.
_ENV_NAMES = {
    "concurrency": "CONCURRENT_PAGES",
    "max_retries": "MAX_RETRIES",
    "wait_multiplier": "RETRY_WAIT_MULTIPLIER",
    "post_click_wait_ms": "POST_CLICK_WAIT",
    "batch_delay_min_ms": "BATCH_DELAY_MIN",
    "batch_delay_max_ms": "BATCH_DELAY_MAX",
    "page_load_delay_min_ms": "PAGE_LOAD_DELAY_MIN",
    "page_load_delay_max_ms": "PAGE_LOAD_DELAY_MAX",
    "proxy_retry_delay_min_ms": "PROXY_RETRY_DELAY_MIN",
    "proxy_retry_delay_max_ms": "PROXY_RETRY_DELAY_MAX",
    "pages_per_browser": "PAGES_PER_BROWSER",
    "sheet_name": "SHEET_NAME",
    "restart_event_type": "RESTART_EVENT_TYPE",
}


@dataclass(frozen=True)
class Settings:
    mode: ExtractionMode
    spreadsheet_id: str
    sheet_name: str
    credentials_path: str
    sheet_batch_size: int
    concurrency: int
    page_timeout_ms: int
    max_retries: int
    retry_delay_min_ms: int
    retry_delay_max_ms: int
    backoff: str
    wait_multiplier: float
    settle_min_ms: int
    settle_max_ms: int
    post_click_wait_ms: int
    batch_delay_min_ms: int
    batch_delay_max_ms: int
    page_load_delay_min_ms: int
    page_load_delay_max_ms: int
    proxies: tuple[str, ...]
    max_proxy_attempts: int
    proxy_retry_delay_min_ms: int
    proxy_retry_delay_max_ms: int
    pages_per_browser: int
    max_runtime_minutes: float
    github_repository: str | None
    gh_token: str | None
    restart_event_type: str
    timestamp_tz: str
    url: str | None = None
    limit: int | None = None
    dry_run: bool = False
    trace: bool = False
    debug_html: bool = False
    debug_frames: bool = False
    headed: bool = False

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_retries,
            delay_min_s=self.retry_delay_min_ms / 1000.0,
            delay_max_s=self.retry_delay_max_ms / 1000.0,
            backoff=self.backoff,
            wait_multiplier=self.wait_multiplier,
        )

    def log_safe(self) -> dict[str, object]:
        """Settings as log fields, without credentials."""

        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out["mode"] = self.mode.value
        out["gh_token"] = bool(self.gh_token)
        out["proxies"] = len(self.proxies)
        return out


def parse_proxies(raw: str | None) -> tuple[str, ...]:
    """Split the ``;``-separated ``PROXIES`` list."""

    if not raw:
        return ()
    return tuple(p.strip() for p in raw.split(";") if p.strip())


def _coerce(value: str, like: object) -> object:
    if isinstance(like, bool):
        return value.strip().lower() in ("1", "true", "yes")
    if isinstance(like, int):
        return int(value)
    if isinstance(like, float):
        return float(value)
    return value


def mode_defaults(mode: ExtractionMode, environ: Mapping[str, str] | None = None) -> dict[str, object]:
    """Per-mode defaults with environment overrides applied."""

    env = os.environ if environ is None else environ
    out = dict(MODE_DEFAULTS[mode])
    for key, env_name in _ENV_NAMES.items():
        raw = env.get(env_name)
        if raw:
            out[key] = _coerce(raw, out[key])
    proxies = parse_proxies(env.get("PROXIES"))
    out.update(
        spreadsheet_id=env.get("SPREADSHEET_ID", DEFAULT_SPREADSHEET_ID),
        credentials_path=env.get("CREDENTIALS_PATH", DEFAULT_CREDENTIALS_PATH),
        sheet_batch_size=int(env.get("SHEET_BATCH_SIZE") or 1000),
        page_timeout_ms=int(env.get("MAX_WAIT_TIME") or 60000),
        proxies=proxies,
        max_proxy_attempts=int(env.get("MAX_PROXY_ATTEMPTS") or max(3, len(proxies))),
        max_runtime_minutes=float(env.get("MAX_RUNTIME_MINUTES") or DEFAULT_MAX_RUNTIME_MINUTES),
        github_repository=env.get("GITHUB_REPOSITORY") or None,
        gh_token=env.get("GH_TOKEN") or None,
        timestamp_tz=env.get("TIMESTAMP_TZ") or DEFAULT_TIMESTAMP_TZ,
    )
    return out


def build_parser(mode: ExtractionMode, defaults: Mapping[str, object]) -> argparse.ArgumentParser:
    label = "app-install" if mode is ExtractionMode.APP else "image"
    p = argparse.ArgumentParser(description=f"Extract {label} ad fields from GATC creative pages listed in a sheet")
    p.add_argument("--spreadsheet-id", default=defaults["spreadsheet_id"])
    p.add_argument("--sheet-name", default=defaults["sheet_name"])
    p.add_argument("--credentials-path", default=defaults["credentials_path"])
    p.add_argument("--sheet-batch-size", type=int, default=defaults["sheet_batch_size"], help="Rows read per sheet request")
    p.add_argument("--concurrency", type=int, default=defaults["concurrency"], help="Concurrent pages per browser session")
    p.add_argument("--page-timeout-ms", type=int, default=defaults["page_timeout_ms"], help="Navigation timeout (MAX_WAIT_TIME)")
    p.add_argument("--max-retries", type=int, default=defaults["max_retries"], help="Attempts per URL before giving up")
    p.add_argument("--wait-multiplier", type=float, default=defaults["wait_multiplier"], help="Per-attempt growth of settle and post-click waits")
    p.add_argument("--post-click-wait-ms", type=int, default=defaults["post_click_wait_ms"])
    p.add_argument("--batch-delay-min-ms", type=int, default=defaults["batch_delay_min_ms"])
    p.add_argument("--batch-delay-max-ms", type=int, default=defaults["batch_delay_max_ms"])
    p.add_argument("--pages-per-browser", type=int, default=defaults["pages_per_browser"], help="Requests handled before the browser is recycled")
    p.add_argument("--max-proxy-attempts", type=int, default=defaults["max_proxy_attempts"], help="Consecutive blocked sessions before stopping")
    p.add_argument("--max-runtime-minutes", type=float, default=defaults["max_runtime_minutes"], help="Wall-clock session budget")
    p.add_argument("--url", help="Extract a single creative URL and print the result (smoke test)")
    p.add_argument("--limit", type=int, help="Process at most N pending rows")
    p.add_argument("--dry-run", action="store_true", help="Do not write results back to the sheet")
    p.add_argument("--trace", action="store_true", help="Save a Playwright trace per row under media/debug")
    p.add_argument("--debug-html", action="store_true", help="Dump page HTML to media/debug/page_<row>.html")
    p.add_argument("--debug-frames", action="store_true", help="Log the iframe inventory of each page")
    p.add_argument("--headed", action="store_true", help="Run Chromium with a visible window")
    return p


def validate_args(args: argparse.Namespace) -> None:
    """Reject inconsistent settings and warn about expensive ones."""

    if args.concurrency < 1:
        raise ValueError(f"concurrency must be >= 1 (got {args.concurrency})")
    if args.max_retries < 1:
        raise ValueError(f"max_retries must be >= 1 (got {args.max_retries})")
    if args.pages_per_browser < 1:
        raise ValueError(f"pages_per_browser must be >= 1 (got {args.pages_per_browser})")
    if args.batch_delay_min_ms > args.batch_delay_max_ms:
        raise ValueError(f"batch_delay_min_ms ({args.batch_delay_min_ms}) is above batch_delay_max_ms ({args.batch_delay_max_ms})")
    if args.concurrency > args.pages_per_browser:
        jlog(
            "warning",
            event="concurrency_above_session_size",
            concurrency=args.concurrency,
            pages_per_browser=args.pages_per_browser,
        )


def parse_settings(
    mode: ExtractionMode,
    argv: Sequence[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    defaults = mode_defaults(mode, environ)
    ns = build_parser(mode, defaults).parse_args(argv)
    validate_args(ns)
    for lo, hi in (
        ("retry_delay_min_ms", "retry_delay_max_ms"),
        ("page_load_delay_min_ms", "page_load_delay_max_ms"),
        ("proxy_retry_delay_min_ms", "proxy_retry_delay_max_ms"),
    ):
        if defaults[lo] > defaults[hi]:
            raise ValueError(f"{lo} ({defaults[lo]}) is above {hi} ({defaults[hi]})")

    return Settings(
        mode=mode,
        spreadsheet_id=ns.spreadsheet_id,
        sheet_name=ns.sheet_name,
        credentials_path=ns.credentials_path,
        sheet_batch_size=ns.sheet_batch_size,
        concurrency=ns.concurrency,
        page_timeout_ms=ns.page_timeout_ms,
        max_retries=ns.max_retries,
        retry_delay_min_ms=defaults["retry_delay_min_ms"],
        retry_delay_max_ms=defaults["retry_delay_max_ms"],
        backoff=defaults["backoff"],
        wait_multiplier=ns.wait_multiplier,
        settle_min_ms=defaults["settle_min_ms"],
        settle_max_ms=defaults["settle_max_ms"],
        post_click_wait_ms=ns.post_click_wait_ms,
        batch_delay_min_ms=ns.batch_delay_min_ms,
        batch_delay_max_ms=ns.batch_delay_max_ms,
        page_load_delay_min_ms=defaults["page_load_delay_min_ms"],
        page_load_delay_max_ms=defaults["page_load_delay_max_ms"],
        proxies=defaults["proxies"],
        max_proxy_attempts=ns.max_proxy_attempts,
        proxy_retry_delay_min_ms=defaults["proxy_retry_delay_min_ms"],
        proxy_retry_delay_max_ms=defaults["proxy_retry_delay_max_ms"],
        pages_per_browser=ns.pages_per_browser,
        max_runtime_minutes=ns.max_runtime_minutes,
        github_repository=defaults["github_repository"],
        gh_token=defaults["gh_token"],
        restart_event_type=defaults["restart_event_type"],
        timestamp_tz=defaults["timestamp_tz"],
        url=ns.url,
        limit=ns.limit,
        dry_run=ns.dry_run,
        trace=ns.trace,
        debug_html=ns.debug_html,
        debug_frames=ns.debug_frames,
        headed=ns.headed,
    )


__all__ = [
    "MODE_DEFAULTS",
    "Settings",
    "build_parser",
    "mode_defaults",
    "parse_proxies",
    "parse_settings",
    "validate_args",
]
