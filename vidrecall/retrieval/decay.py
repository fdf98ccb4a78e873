"""
Temporal decay for retrieval scores

Exponential half-life decay on the parent video's publish date:

    decay = 0.5 ** (age_days / half_life_days)

A result without a publish date is never decayed. Decay multiplies the
score and the product is clamped to [0, 1].
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from vidrecall.retrieval.types import SearchResult


logger = logging.getLogger(__name__)

DEFAULT_HALF_LIFE_DAYS = 365.0
SECONDS_PER_DAY = 86400.0


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def age_in_days(published_at: datetime, now: datetime | None = None) -> float:
    """
    Age of content in days, clamped at 0 for future-dated items

    Naive datetimes are treated as UTC.
    """
    now_dt = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    age_seconds = (now_dt - _as_utc(published_at)).total_seconds()
    return max(0.0, age_seconds / SECONDS_PER_DAY)


def calculate_temporal_decay(
    published_at: datetime | None,
    half_life_days: float = DEFAULT_HALF_LIFE_DAYS,
    now: datetime | None = None,
) -> float:
    """
    Decay multiplier in (0, 1] for content published at `published_at`

    Args:
        published_at: Publish time (None = unknown, no decay)
        half_life_days: Days for relevance weight to halve
        now: Optional reference time for deterministic results

    Returns:
        1.0 for unknown dates, otherwise 0.5 ** (age_days / half_life_days)
    """
    if published_at is None:
        return 1.0

    if half_life_days <= 0:
        raise ValueError(f"half_life_days must be positive, got {half_life_days}")

    return 0.5 ** (age_in_days(published_at, now) / half_life_days)


def apply_temporal_decay(
    results: list[SearchResult],
    enabled: bool,
    half_life_days: float | None = None,
    now: datetime | None = None,
) -> list[SearchResult]:
    """
    Reweight results by publish-date decay

    When disabled this returns the input list untouched and
    half_life_days is ignored. When enabled every result is decayed
    regardless of how its score was produced, and the list is re-sorted
    by decayed score (stable, so equal scores keep their order).

    Args:
        results: Results from any retrieval mode
        enabled: Apply decay at all
        half_life_days: Half-life; DEFAULT_HALF_LIFE_DAYS when None
        now: Optional reference time for deterministic results

    Returns:
        New list of decayed results (or the input list when disabled)
    """
    if not enabled:
        return results

    half_life = half_life_days if half_life_days is not None else DEFAULT_HALF_LIFE_DAYS
    reference = now if now is not None else datetime.now(timezone.utc)

    decayed = []
    for result in results:
        factor = calculate_temporal_decay(result.published_at, half_life, reference)
        score = max(0.0, min(1.0, result.similarity * factor))
        decayed.append(result.with_score(score, decay=result.decay * factor))

    decayed.sort(key=lambda r: r.similarity, reverse=True)

    logger.debug(f"Applied temporal decay to {len(decayed)} results (half_life={half_life}d)")
    return decayed


def freshness_label(published_at: datetime | None, now: datetime | None = None) -> str | None:
    """
    Short human label for content age

    "Fresh" under 90 days, "<n>mo" up to a year, "<n>y old" after.
    None when the publish date is unknown.
    """
    if published_at is None:
        return None

    days = int(age_in_days(published_at, now))
    if days < 90:
        return "Fresh"
    if days < 365:
        return f"{days // 30}mo"
    return f"{days // 365}y old"
