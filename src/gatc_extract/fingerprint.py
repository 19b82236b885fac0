"""Per-context browser fingerprint profiles."""

from __future__ import annotations

import json
import random
from dataclasses import dataclass

from playwright.async_api import BrowserContext

from .logging import jlog

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/130.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36 Edg/131.0.0.0",
)

VIEWPORTS = (
    (1920, 1080),
    (1366, 768),
    (1536, 864),
    (1440, 900),
    (1280, 720),
    (1600, 900),
    (1680, 1050),
    (1280, 800),
)

ACCEPT_LANGUAGES = ("en-US,en;q=0.9", "en-US,en;q=0.8", "en-GB,en;q=0.9,en-US;q=0.8")
DEVICE_MEMORY_GB = (4, 8, 16)
SCREEN_JITTER_PX = 50


@dataclass(frozen=True)
class FingerprintProfile:
    user_agent: str
    viewport: tuple[int, int]
    accept_language: str
    screen: tuple[int, int]
    platform: str
    hardware_concurrency: int
    device_memory: int

    @property
    def is_chromium(self) -> bool:
        return "Chrome/" in self.user_agent and "Firefox/" not in self.user_agent

    @property
    def locale(self) -> str:
        return self.accept_language.split(",")[0]

    def _client_hints(self) -> dict[str, str]:
        if not self.is_chromium:
            return {}
        major = self.user_agent.split("Chrome/")[1].split(".")[0]
        brand = "Microsoft Edge" if " Edg/" in self.user_agent else "Google Chrome"
        platform = {"Win32": "Windows", "MacIntel": "macOS"}.get(self.platform, "Linux")
        return {
            "sec-ch-ua": f'"{brand}";v="{major}", "Chromium";v="{major}", "Not_A Brand";v="24"',
            "sec-ch-ua-mobile": "?0",
            "sec-ch-ua-platform": f'"{platform}"',
        }

    def context_options(self) -> dict:
        """Keyword arguments for ``browser.new_context``."""

        width, height = self.viewport
        screen_w, screen_h = self.screen
        return {
            "user_agent": self.user_agent,
            "viewport": {"width": width, "height": height},
            "screen": {"width": screen_w, "height": screen_h},
            "locale": self.locale,
            "extra_http_headers": {"Accept-Language": self.accept_language, **self._client_hints()},
        }

    def init_script(self) -> str:
        """Navigator/screen overrides installed before any page script runs."""

        languages = [part.split(";")[0] for part in self.accept_language.split(",")]
        params = json.dumps(
            {
                "languages": languages,
                "platform": self.platform,
                "hardwareConcurrency": self.hardware_concurrency,
                "deviceMemory": self.device_memory,
                "screenWidth": self.screen[0],
                "screenHeight": self.screen[1],
            }
        )
        return (
            "(() => {\n"
            f"  const fp = {params};\n"
            + _INIT_SCRIPT_BODY
            + "})();"
        )


_INIT_SCRIPT_BODY = """
  const define = (obj, prop, getter) => {
    try { Object.defineProperty(obj, prop, { get: getter, configurable: true }); } catch (e) {}
  };
  define(navigator, 'webdriver', () => undefined);
  try { if (!window.chrome) { window.chrome = { runtime: {} }; } } catch (e) {}
  define(navigator, 'plugins', () => [1, 2, 3, 4, 5]);
  define(navigator, 'languages', () => fp.languages);
  define(navigator, 'platform', () => fp.platform);
  define(navigator, 'hardwareConcurrency', () => fp.hardwareConcurrency);
  define(navigator, 'deviceMemory', () => fp.deviceMemory);
  define(screen, 'width', () => fp.screenWidth);
  define(screen, 'height', () => fp.screenHeight);
  define(screen, 'availWidth', () => fp.screenWidth);
  define(screen, 'availHeight', () => fp.screenHeight - 40);
  try {
    const query = window.navigator.permissions.query.bind(window.navigator.permissions);
    window.navigator.permissions.query = (p) => (
      p && p.name === 'notifications'
        ? Promise.resolve({ state: Notification.permission })
        : query(p)
    );
  } catch (e) {}
  try {
    const toDataURL = HTMLCanvasElement.prototype.toDataURL;
    HTMLCanvasElement.prototype.toDataURL = function (...args) {
      try {
        const ctx = this.getContext('2d');
        if (ctx && this.width > 0 && this.height > 0) {
          const px = ctx.getImageData(0, 0, 1, 1);
          px.data[0] = (px.data[0] + Math.floor(Math.random() * 3)) % 256;
          ctx.putImageData(px, 0, 0);
        }
      } catch (e) {}
      return toDataURL.apply(this, args);
    };
  } catch (e) {}
"""


def _platform_for(user_agent: str) -> str:
    if "Windows" in user_agent:
        return "Win32"
    if "Macintosh" in user_agent:
        return "MacIntel"
    return "Linux x86_64"


def generate_profile(rng: random.Random | None = None) -> FingerprintProfile:
    """Draw a fresh, internally consistent profile."""

    rng = rng or random.Random()
    user_agent = rng.choice(USER_AGENTS)
    width, height = rng.choice(VIEWPORTS)
    screen = (
        max(width, width + rng.randint(-SCREEN_JITTER_PX, SCREEN_JITTER_PX)),
        max(height, height + rng.randint(-SCREEN_JITTER_PX, SCREEN_JITTER_PX)),
    )
    return FingerprintProfile(
        user_agent=user_agent,
        viewport=(width, height),
        accept_language=rng.choice(ACCEPT_LANGUAGES),
        screen=screen,
        platform=_platform_for(user_agent),
        hardware_concurrency=rng.randint(4, 7),
        device_memory=rng.choice(DEVICE_MEMORY_GB),
    )


async def apply_profile(context: BrowserContext, profile: FingerprintProfile) -> None:
    """Install the profile's init script on a context; failures are non-fatal."""

    try:
        await context.add_init_script(profile.init_script())
    except Exception as exc:
        jlog("warning", event="fingerprint_apply_failed", error=str(exc))


__all__ = [
    "FingerprintProfile",
    "USER_AGENTS",
    "VIEWPORTS",
    "apply_profile",
    "generate_profile",
]
