"""
Evaluation periods and scoring.
"""
from datetime import date
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import Company, SecurityEvaluation

Period = Tuple[int, int]  # (year, month)

# Status a decision moves an evaluation to
APPROVAL_TRANSITIONS = {
    "approve": "approved",
    "reject": "rejected",
    "return": "returned",
}


def previous_month(today: date) -> Period:
    if today.month == 1:
        return today.year - 1, 12
    return today.year, today.month - 1


def next_month(period: Period) -> Period:
    year, month = period
    if month == 12:
        return year + 1, 1
    return year, month + 1


def next_evaluation_period(last_period: Optional[Period], today: date) -> Tuple[Period, bool]:
    """
    Returns (next period to evaluate, whether the current cycle is done).

    The current cycle is last month. A company never evaluated starts there;
    otherwise the next period follows its latest evaluated one.
    """
    cycle = previous_month(today)
    if last_period is None:
        return cycle, False
    return next_month(last_period), tuple(last_period) >= cycle


def overall_score(ratings: Iterable[int]) -> Optional[float]:
    ratings = list(ratings)
    if not ratings:
        return None
    return round(sum(ratings) / len(ratings), 2)


def validate_ratings(ratings: Iterable[int]) -> List[int]:
    """Indexes of ratings outside the configured scale."""
    return [
        i for i, r in enumerate(ratings)
        if r < settings.rating_min or r > settings.rating_max
    ]


def latest_periods(db: Session) -> dict:
    """company_id -> latest evaluated (year, month)."""
    rows = db.query(
        SecurityEvaluation.company_id,
        SecurityEvaluation.evaluation_year,
        SecurityEvaluation.evaluation_month,
    ).all()
    latest = {}
    for company_id, year, month in rows:
        period = (year, month)
        if company_id not in latest or period > latest[company_id]:
            latest[company_id] = period
    return latest


def recompute_company_score(db: Session, company: Company, window: Optional[int] = None) -> Optional[float]:
    """Rolling score: mean of the latest `window` evaluation scores."""
    window = window or settings.score_window
    rows = (
        db.query(SecurityEvaluation.overall_score)
        .filter(
            SecurityEvaluation.company_id == company.id,
            SecurityEvaluation.overall_score.isnot(None),
        )
        .order_by(SecurityEvaluation.evaluation_year.desc(), SecurityEvaluation.evaluation_month.desc())
        .limit(window)
        .all()
    )
    company.overall_score = overall_score(score for (score,) in rows) if rows else None
    return company.overall_score
