"""
Confidence scoring for reports

Pure functions only: callers persist the result. Every update is a fixed
percentage of the distance to the bound being approached, rounded up, so a
single interaction always moves a non-saturated score by at least one point
and steps shrink as the score nears 0 or 100.

    confirm            score + ceil((100 - score) * SCORE_CONFIRM_PCT / 100)
    no_longer_active   score - ceil(score * SCORE_INACTIVE_PCT / 100)
    false              score - ceil(score * SCORE_FALSE_PCT / 100)

With the defaults (25/15/35) a photo report (70) reaches 88 after three
confirmations and a report without photo (40) drops to 10 after three
"false" interactions.
"""
from migralert.core.config import settings
from migralert.models.report import InteractionType, ReportStatus

MIN_SCORE = 0
MAX_SCORE = 100


def _ceil_pct(value: int, pct: int) -> int:
    # Integer ceil(value * pct / 100) without float rounding error
    return -(-(value * pct) // 100)


def clamp(score: int) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, int(score)))


def initial_score(has_photo: bool) -> int:
    """Photo evidence is the strongest trust signal available at creation time."""
    return settings.SCORE_PHOTO_INITIAL if has_photo else settings.SCORE_NO_PHOTO_INITIAL


def apply_interaction(current_score: int, interaction_type) -> int:
    score = clamp(current_score)
    kind = InteractionType(interaction_type)

    if kind is InteractionType.CONFIRM:
        return clamp(score + _ceil_pct(MAX_SCORE - score, settings.SCORE_CONFIRM_PCT))
    if kind is InteractionType.NO_LONGER_ACTIVE:
        return clamp(score - _ceil_pct(score, settings.SCORE_INACTIVE_PCT))
    return clamp(score - _ceil_pct(score, settings.SCORE_FALSE_PCT))


def confidence_level(score: int) -> str:
    if score >= 70:
        return "high"
    if score >= 40:
        return "medium"
    if score >= 20:
        return "low"
    return "pending"


def next_status(status: str, score: int, confirmations: int) -> str:
    """
    Status after a score change.

    - any live report collapses to 'removed' at REMOVE_SCORE_THRESHOLD or below
    - 'pending' is promoted to 'verified' once both the score and the number
      of confirmations reach their thresholds
    """
    current = ReportStatus(status)
    if current is ReportStatus.REMOVED:
        return current.value

    if score <= settings.REMOVE_SCORE_THRESHOLD:
        return ReportStatus.REMOVED.value

    if (
        current is ReportStatus.PENDING
        and score >= settings.VERIFY_SCORE_THRESHOLD
        and confirmations >= settings.VERIFY_MIN_CONFIRMATIONS
    ):
        return ReportStatus.VERIFIED.value

    return current.value

