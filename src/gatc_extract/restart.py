"""Self-restart signal via a GitHub ``repository_dispatch`` event."""

from __future__ import annotations

import requests

from .logging import jlog

GITHUB_API = "https://api.github.com"
DISPATCH_TIMEOUT_S = 15


def trigger_self_restart(
    repository: str | None,
    token: str | None,
    event_type: str,
    *,
    reason: str,
    session: requests.Session | None = None,
) -> bool:
    """Fire-and-forget dispatch so the workflow schedules a fresh run; never raises."""

    if not repository or not token:
        jlog("warning", event="restart_skipped", reason=reason, message="GITHUB_REPOSITORY or GH_TOKEN missing")
        return False
    http = session or requests
    try:
        resp = http.post(
            f"{GITHUB_API}/repos/{repository}/dispatches",
            json={"event_type": event_type},
            headers={
                "Authorization": f"token {token}",
                "Accept": "application/vnd.github.v3+json",
                "User-Agent": "gatc-extract",
            },
            timeout=DISPATCH_TIMEOUT_S,
        )
    except requests.RequestException as exc:
        jlog("error", event="restart_failed", reason=reason, error=str(exc))
        return False
    ok = 200 <= resp.status_code < 300
    jlog(
        "info" if ok else "error",
        event="restart_triggered" if ok else "restart_failed",
        reason=reason,
        repository=repository,
        event_type=event_type,
        status=resp.status_code,
    )
    return ok


__all__ = ["trigger_self_restart"]
