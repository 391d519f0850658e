"""
Ranker

Orders scored applicants into a strict total order and assigns dense ranks.

Sort key:
  1. merit score, descending, bucketed to SCORE_EPSILON so near-equal scores tie
  2. application date, earlier first
  3. application number, lexicographically smaller first
"""

from datetime import datetime, timezone

from ..config import SCORE_EPSILON
from ..schemas.admission import RankCandidate, RankedApplicant
from ..utils.error_handlers import ValidationError


def _as_utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; treat them as UTC so they compare with aware ones.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def score_bucket(score: float) -> int:
    # Quantized score: equality on buckets is transitive, unlike |a - b| <= epsilon.
    return int(round(float(score) / SCORE_EPSILON))


def rank_key(c: RankCandidate) -> tuple:
    return (-score_bucket(c.score), _as_utc(c.application_date), c.application_number)


def rank(candidates: list[RankCandidate]) -> list[RankedApplicant]:
    """
    Rank candidates 1..N with no gaps and no shared ranks.

    Application numbers must be unique; they are the last tie-break and
    guarantee the total order.
    """
    seen: set[str] = set()
    for c in candidates or []:
        if c.application_number in seen:
            raise ValidationError(
                "Duplicate application number in ranking input",
                details={"application_number": c.application_number},
            )
        seen.add(c.application_number)

    ordered = sorted(candidates or [], key=rank_key)
    return [
        RankedApplicant(**c.model_dump(), rank=i)
        for i, c in enumerate(ordered, start=1)
    ]
