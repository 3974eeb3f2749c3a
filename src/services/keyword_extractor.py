"""Keyword extraction and niche inference for video titles.

Titles are lower-cased and reduced to [a-z0-9 ] before anything else, so
every keyword produced here is plain ASCII words separated by single spaces.
"""

import os
import re
from typing import Iterable, List, Optional, Sequence

MAX_KEYWORDS = 15

STOP_WORDS = frozenset({
    "a", "an", "the", "and", "or", "but", "is", "are", "was", "were",
    "in", "on", "at", "to", "for", "with", "by", "about", "like",
    "from", "of", "as", "this", "that", "these", "those", "it", "its",
    "how", "what", "when", "where", "who", "why", "will", "would", "could",
    "should", "do", "does", "did", "has", "have", "had", "can", "may", "might",
})

KNOWN_PHRASES = (
    "how to", "tutorial", "review", "unboxing", "gameplay", "walkthrough",
    "reaction", "official video", "official trailer", "behind the scenes",
    "vs", "versus", "comparison", "top 10", "top 5", "best of", "worst of",
    "music video", "live performance", "interview", "explained", "guide",
    "step by step", "diy", "do it yourself", "compilation",
)

TOPIC_TERMS = {
    "gaming": ("gameplay", "playthrough", "walkthrough", "game", "gaming", "xbox",
               "playstation", "nintendo", "steam", "pc game"),
    "music": ("music", "song", "album", "concert", "live", "official video", "lyrics",
              "remix", "cover"),
    "tech": ("review", "unboxing", "tech", "technology", "smartphone", "laptop",
             "computer", "gadget", "tutorial"),
    "food": ("recipe", "cooking", "food", "chef", "restaurant", "kitchen", "baking",
             "meal", "delicious"),
    "travel": ("travel", "vlog", "tour", "trip", "vacation", "destination", "hotel",
               "resort", "guide"),
    "fitness": ("workout", "exercise", "fitness", "gym", "training", "bodybuilding",
                "yoga", "cardio", "diet"),
    "fashion": ("fashion", "style", "outfit", "clothing", "haul", "makeup", "beauty",
                "tutorial", "trend"),
    "education": ("learn", "education", "course", "tutorial", "lesson", "explained",
                  "guide", "tips", "how to"),
}

# First match wins, so order is precedence.
NICHE_CANDIDATES = (
    "music", "gaming", "sports", "news", "education",
    "howto", "science", "technology", "entertainment", "travel",
    "food", "beauty", "fashion", "fitness", "comedy",
)

DEFAULT_NICHE = "other"

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: Optional[str]) -> str:
    """Lower-case, replace everything outside [a-z0-9] with spaces, collapse runs."""
    if not text:
        return ""
    cleaned = _NON_ALNUM.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", cleaned).strip()


def _contains_phrase(padded_text: str, phrase: str) -> bool:
    return f" {phrase} " in padded_text


class KeywordExtractor:
    """Turns a title into a bounded keyword list and guesses its niche."""

    def __init__(
        self,
        stop_words: Iterable[str] = STOP_WORDS,
        known_phrases: Sequence[str] = KNOWN_PHRASES,
        topic_terms: Optional[dict] = None,
        niche_candidates: Optional[Sequence[str]] = None,
        max_keywords: int = MAX_KEYWORDS,
    ):
        self.stop_words = frozenset(stop_words)
        self.known_phrases = tuple(known_phrases)
        self.topic_terms = TOPIC_TERMS if topic_terms is None else topic_terms
        self.niche_candidates = tuple(niche_candidates or NICHE_CANDIDATES)
        self.max_keywords = max_keywords

    @classmethod
    def from_config(cls, config: Optional[dict] = None) -> "KeywordExtractor":
        """Build an extractor, reading NICHE_CANDIDATES / MAX_KEYWORDS overrides."""
        config = config or {}
        candidates = config.get("niche_candidates", os.getenv("NICHE_CANDIDATES"))
        if isinstance(candidates, str):
            candidates = [c.strip().lower() for c in candidates.split(",") if c.strip()]
        max_keywords = config.get(
            "max_keywords", int(os.getenv("MAX_KEYWORDS", str(MAX_KEYWORDS)))
        )
        return cls(niche_candidates=candidates or None, max_keywords=max_keywords)

    def extract(self, title: str, existing: Optional[Iterable[str]] = None) -> List[str]:
        """Extract up to max_keywords keywords from a title.

        Args:
            title: Video title as scraped
            existing: Keywords already known for this video; kept first

        Returns:
            Unique keywords in order: existing, single words, known phrases,
            bigrams, topic terms
        """
        text = normalize_text(title)
        words = text.split()
        padded = f" {text} "

        candidates: List[str] = []
        for kw in existing or []:
            normalized = normalize_text(kw) if isinstance(kw, str) else ""
            if normalized:
                candidates.append(normalized)

        candidates.extend(
            w for w in words if len(w) > 3 and w not in self.stop_words
        )
        candidates.extend(p for p in self.known_phrases if _contains_phrase(padded, p))
        candidates.extend(
            f"{first} {second}"
            for first, second in zip(words, words[1:])
            if len(first) > 2 and len(second) > 2
        )
        for terms in self.topic_terms.values():
            candidates.extend(t for t in terms if _contains_phrase(padded, t))

        keywords: List[str] = []
        seen = set()
        for kw in candidates:
            if kw in seen or kw in self.stop_words:
                continue
            seen.add(kw)
            keywords.append(kw)
            if len(keywords) >= self.max_keywords:
                break
        return keywords

    def infer_niche(self, title: str, keywords: Iterable[str] = ()) -> str:
        """Return the first candidate niche mentioned in title or keywords.

        Matching is plain substring matching over the lower-cased text, in
        candidate order; "other" when nothing matches.
        """
        haystack = " ".join([(title or "").lower(), *[k.lower() for k in keywords]])
        for niche in self.niche_candidates:
            if niche in haystack:
                return niche
        return DEFAULT_NICHE


_default_extractor = KeywordExtractor()


def extract_keywords(title: str, existing: Optional[Iterable[str]] = None) -> List[str]:
    """Extract keywords with the default extractor."""
    return _default_extractor.extract(title, existing)


def infer_niche(title: str, keywords: Iterable[str] = ()) -> str:
    """Infer a niche with the default candidate order."""
    return _default_extractor.infer_niche(title, keywords)
