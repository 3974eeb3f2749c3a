"""YouTube search suggestions with rough volume and competition estimates.

The suggestion endpoint answers JSONP: `window.google.ac.h([query, [[text, 0,
[...]], ...], {...}])`. Volume and competition are heuristics, not measured
figures; they only rank suggestions relative to each other.
"""

import json
import logging
import random
from typing import List, Optional

import requests

from models.trend import KeywordSuggestion, SuggestionResult
from services.browser_fingerprint import USER_AGENTS
from utils.cache import SuggestionCache, load_cache_from_config

logger = logging.getLogger(__name__)

SUGGEST_URL = "https://suggestqueries.google.com/complete/search"
DEFAULT_TIMEOUT_SECONDS = 5.0

POPULAR_TERMS = ("how to", "tutorial", "review", "best", "2024", "guide", "free")

MOCK_TEMPLATES = (
    "{q} tutorial",
    "{q} review",
    "{q} tips",
    "{q} 2024",
    "how to {q}",
    "best {q}",
    "{q} for beginners",
)


def unwrap_jsonp(text: str):
    """Parse the JSON payload between the first '(' and the last ')'.

    Raises:
        ValueError: No parenthesized payload or invalid JSON
    """
    start = text.find("(")
    end = text.rfind(")")
    if start == -1 or end <= start:
        raise ValueError("Response is not JSONP")
    return json.loads(text[start + 1:end])


def estimate_search_volume(keyword: str, rng: Optional[random.Random] = None) -> int:
    """Shorter keywords and popular phrasings get more volume."""
    rng = rng or random
    base_volume = max(10_000, 1_000_000 / (max(len(keyword), 1) * 0.7))
    random_factor = 0.3 + rng.random() * 1.4
    popular_boost = 1.5 if any(term in keyword for term in POPULAR_TERMS) else 1.0

    volume = round(base_volume * random_factor * popular_boost / 100) * 100
    if len(keyword) < 10 and rng.random() > 0.8:
        volume = int(volume * 2.5)
    return volume


def estimate_competition(rng: Optional[random.Random] = None) -> str:
    rng = rng or random
    if rng.random() * 100 < 40:
        return "Low"
    if rng.random() * 100 < 75:
        return "Medium"
    return "High"


class SuggestionClient:
    """Fetches YouTube autocomplete suggestions for a seed query."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        cache: Optional[SuggestionCache] = None,
        rng: Optional[random.Random] = None,
    ):
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", random.choice(USER_AGENTS))
        self.timeout = timeout
        self.cache = cache
        self.rng = rng or random.Random()

    @classmethod
    def from_config(cls, config: dict) -> "SuggestionClient":
        return cls(
            timeout=config.get("suggestion_timeout_seconds", DEFAULT_TIMEOUT_SECONDS),
            cache=load_cache_from_config(config),
        )

    def _score(self, keywords: List[str]) -> List[KeywordSuggestion]:
        return [
            KeywordSuggestion(
                keyword=keyword,
                search_volume=estimate_search_volume(keyword, self.rng),
                competition=estimate_competition(self.rng),
            )
            for keyword in keywords
        ]

    def fetch_raw(self, query: str) -> List[str]:
        """Suggestion texts straight from the endpoint.

        Raises:
            requests.RequestException: Transport failure or non-2xx status
            ValueError: Malformed payload
        """
        response = self.session.get(
            SUGGEST_URL,
            params={"client": "youtube", "ds": "yt", "q": query},
            timeout=self.timeout,
        )
        response.raise_for_status()
        payload = unwrap_jsonp(response.text)
        try:
            return [str(item[0]) for item in payload[1]]
        except (IndexError, KeyError, TypeError) as e:
            raise ValueError(f"Unexpected suggestion payload: {e}") from e

    def mock_suggestions(self, query: str) -> SuggestionResult:
        keywords = [template.format(q=query) for template in MOCK_TEMPLATES]
        return SuggestionResult(query=query, suggestions=self._score(keywords), is_mock=True)

    def suggest(self, query: str) -> SuggestionResult:
        """Suggestions for a query; a mock set flagged is_mock when the endpoint fails.

        Raises:
            ValueError: Empty query
        """
        query = (query or "").strip()
        if not query:
            raise ValueError("Search query is required")

        keywords = self.cache.get(query) if self.cache else None
        if keywords is None:
            try:
                keywords = self.fetch_raw(query)
            except (requests.RequestException, ValueError) as e:
                logger.warning(f"Suggestion lookup failed for '{query}', using mock data: {e}")
                return self.mock_suggestions(query)
            if self.cache:
                self.cache.set(query, keywords)

        logger.debug(f"{len(keywords)} suggestions for '{query}'")
        return SuggestionResult(query=query, suggestions=self._score(keywords))
