"""Parser for human-formatted view counts ("1.2M views", "15K", "123,456 views")."""

import re
from decimal import ROUND_HALF_UP, Decimal

SUFFIX_MULTIPLIERS = {
    "K": 1_000,
    "M": 1_000_000,
    "B": 1_000_000_000,
}

_SUFFIXED = re.compile(r"(\d+(?:\.\d+)?)([KMB])")
_PLAIN = re.compile(r"\d[\d,]*")


def parse_view_count(text) -> int:
    """Convert a view count string to an integer.

    The first number immediately followed by K, M or B is scaled and rounded
    half up in decimal arithmetic.
    Without a suffix, the first digit group (commas allowed) is parsed.
    Anything without digits, including None, yields 0. Never raises.
    """
    if not isinstance(text, str) or not text:
        return 0

    match = _SUFFIXED.search(text)
    if match:
        value = Decimal(match.group(1)) * SUFFIX_MULTIPLIERS[match.group(2)]
        return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))

    match = _PLAIN.search(text)
    if not match:
        return 0
    digits = match.group(0).replace(",", "")
    return int(digits) if digits else 0


def format_view_count(views: int) -> str:
    """Render an integer the way listing pages do, e.g. 1200000 -> "1.2M"."""
    if views >= 1_000_000_000:
        return f"{views / 1_000_000_000:.1f}B"
    if views >= 1_000_000:
        return f"{views / 1_000_000:.1f}M"
    if views >= 1_000:
        return f"{views / 1_000:.1f}K"
    return str(views)
