"""Per-session browser fingerprints for headless scraping.

Every session gets a realistic desktop user agent, a slightly jittered
viewport and the request headers a normal browser would send.
"""

import random
from typing import Dict, Optional

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:133.0) Gecko/20100101 Firefox/133.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/18.2 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
]

BASE_VIEWPORT = {"width": 1280, "height": 800}
VIEWPORT_JITTER = 100

LOCALES = ["en-US", "en-GB"]


class BrowserFingerprint:
    """Randomised-but-realistic identity for one browser session."""

    def __init__(self, seed: Optional[str] = None):
        self.rng = random.Random(seed)
        self.user_agent = self.rng.choice(USER_AGENTS)
        self.viewport = {
            "width": BASE_VIEWPORT["width"] + self.rng.randrange(VIEWPORT_JITTER),
            "height": BASE_VIEWPORT["height"] + self.rng.randrange(VIEWPORT_JITTER),
        }
        self.locale = self.rng.choice(LOCALES)

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Accept-Language": f"{self.locale},en;q=0.9",
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Connection": "keep-alive",
        }

    def apply_to_context_options(self) -> Dict:
        """Options for Playwright's browser.new_context(**options)."""
        return {
            "user_agent": self.user_agent,
            "viewport": dict(self.viewport),
            "locale": self.locale,
            "extra_http_headers": self.headers,
            "device_scale_factor": 1,
            "is_mobile": False,
            "has_touch": False,
        }

    def __repr__(self) -> str:
        return (
            f"BrowserFingerprint(viewport={self.viewport['width']}x{self.viewport['height']}, "
            f"locale={self.locale})"
        )
