"""Request filtering and the video-id side channel."""

from __future__ import annotations

import asyncio

from playwright.async_api import BrowserContext, Request, Route

from .urls import video_id_from_request_url

AD_IMAGE_ALLOWLIST = ("googlesyndication.com/simgad", "tpc.googlesyndication.com")
TRACKING_BLOCKLIST = (
    "analytics",
    "google-analytics",
    "doubleclick",
    "pagead",
    "facebook.com",
    "bing.com",
    "logs",
    "collect",
    "securepubads",
)
BLOCKED_RESOURCE_TYPES = frozenset({"image", "font", "stylesheet", "other"})


class VideoIdSlot:
    """Write-once holder for the first video id seen in a context's traffic."""

    def __init__(self) -> None:
        self._value: str | None = None
        self._event: asyncio.Event | None = None

    @property
    def value(self) -> str | None:
        return self._value

    def _get_event(self) -> asyncio.Event:
        if self._event is None:
            self._event = asyncio.Event()
            if self._value is not None:
                self._event.set()
        return self._event

    def capture(self, video_id: str) -> bool:
        if self._value is not None:
            return False
        self._value = video_id
        if self._event is not None:
            self._event.set()
        return True

    def observe(self, url: str) -> str | None:
        video_id = video_id_from_request_url(url)
        if video_id:
            self.capture(video_id)
        return video_id

    async def wait(self, timeout_s: float) -> str | None:
        if self._value is not None:
            return self._value
        try:
            await asyncio.wait_for(self._get_event().wait(), timeout=max(0.0, timeout_s))
        except asyncio.TimeoutError:
            pass
        return self._value


class ResourceGate:
    def __init__(
        self,
        allowlist: tuple[str, ...] = AD_IMAGE_ALLOWLIST,
        blocklist: tuple[str, ...] = TRACKING_BLOCKLIST,
        blocked_types: frozenset[str] = BLOCKED_RESOURCE_TYPES,
    ) -> None:
        self.allowlist = allowlist
        self.blocklist = blocklist
        self.blocked_types = blocked_types

    def should_allow(self, url: str, resource_type: str) -> bool:
        if any(pattern in url for pattern in self.allowlist):
            return True
        if any(pattern in url for pattern in self.blocklist):
            return False
        return resource_type not in self.blocked_types

    async def install(self, context: BrowserContext, slot: VideoIdSlot) -> None:
        """Route every request of ``context`` through the gate, feeding ``slot`` first."""

        async def handle(route: Route, request: Request) -> None:
            url = request.url
            slot.observe(url)
            try:
                if self.should_allow(url, request.resource_type):
                    await route.continue_()
                else:
                    await route.abort()
            except Exception:
                # Route already handled or the page went away.
                pass

        await context.route("**/*", handle)


__all__ = [
    "AD_IMAGE_ALLOWLIST",
    "BLOCKED_RESOURCE_TYPES",
    "ResourceGate",
    "TRACKING_BLOCKLIST",
    "VideoIdSlot",
]
