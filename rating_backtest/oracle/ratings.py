"""Free-text rating classification.

The oracle answers with free text ("Strong Buy", "增持", "Market Perform",
...). Two closed vocabularies are derived from it:

  - normalize_rating()   -> BUY / SELL / HOLD / UNKNOWN  (directional hit mode)
  - classify_direction() -> bullish / bearish / neutral / None  (banded mode)

Both are pure substring matches over a normalized string, driven by the
ordered keyword tables below. The first group with a matching keyword
wins, so order matters ("outperform" must be tested before "perform"-like
neutral phrases). Pass a custom table to extend the vocabulary.
"""

from __future__ import annotations

from rating_backtest.common.schemas import Direction, Rating

KeywordTable = tuple[tuple[str, tuple[str, ...]], ...]

# Matched against the UPPER-cased text
RATING_KEYWORDS: KeywordTable = (
    ("BUY", ("BUY", "買")),
    ("SELL", ("SELL", "賣")),
    ("HOLD", ("HOLD", "NEUTRAL", "中性")),
)

# Matched against the lower-cased text
DIRECTION_KEYWORDS: KeywordTable = (
    ("bullish", ("buy", "long", "outperform", "overweight", "accumulate", "增持", "買")),
    ("bearish", ("sell", "short", "underperform", "reduce", "減持", "賣")),
    ("neutral", ("hold", "neutral", "market perform", "equal weight", "觀望", "持有")),
)


def _first_match(text: str, table: KeywordTable) -> str | None:
    for label, keywords in table:
        if any(keyword in text for keyword in keywords):
            return label
    return None


def normalize_rating(raw: object, keywords: KeywordTable = RATING_KEYWORDS) -> Rating:
    """Map free-text rating onto BUY / SELL / HOLD, else UNKNOWN.

    Args:
        raw: Rating text from the oracle. Non-string values yield UNKNOWN.
        keywords: Ordered (rating, keywords) table matched on upper-cased text.
    """
    if not isinstance(raw, str) or not raw.strip():
        return "UNKNOWN"
    label = _first_match(raw.upper(), keywords)
    return label or "UNKNOWN"  # type: ignore[return-value]


def classify_direction(
    raw: object,
    keywords: KeywordTable = DIRECTION_KEYWORDS,
) -> Direction | None:
    """Map free-text rating onto bullish / bearish / neutral, else None."""
    if not isinstance(raw, str) or not raw.strip():
        return None
    return _first_match(raw.lower(), keywords)  # type: ignore[return-value]
