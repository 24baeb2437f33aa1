import logging
from datetime import datetime, UTC
from typing import List, Optional

from sqlmodel import Session, select

from ..exceptions import InvalidStatusTransition, MatchNotFound, ValidationError
from ..models.match import (
    Match,
    ALLOWED_TRANSITIONS,
    MATCH_STATUSES,
    STATUS_ALIASES,
    UPCOMING,
    LIVE,
    FINISHED,
    CANCELLED,
)
from .scoring import determine_winner

logger = logging.getLogger(__name__)


def normalize_status(status: str) -> str:
    """Map a status spelling onto one of MATCH_STATUSES."""
    value = (status or "").strip().lower()
    value = STATUS_ALIASES.get(value, value)
    if value not in MATCH_STATUSES:
        raise ValidationError(f"Unknown match status '{status}'")
    return value


def _check_score(value: int, field: str) -> None:
    if value is None or isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{field} must be a non-negative integer", **{field: value})


def create_match(
    db: Session,
    team_a: str,
    team_b: str,
    scheduled_at: Optional[datetime] = None,
    tournament: str = "",
    external_id: Optional[str] = None
) -> Match:
    """Create a new upcoming match."""
    if not team_a or not team_b:
        raise ValidationError("Both team names are required")
    if team_a == team_b:
        raise ValidationError("A team cannot play itself", team=team_a)

    match = Match(
        team_a=team_a,
        team_b=team_b,
        tournament=tournament or "",
        scheduled_at=scheduled_at or datetime.now(UTC),
        external_id=external_id
    )
    db.add(match)
    db.commit()
    db.refresh(match)
    return match


def get_match(db: Session, match_id: int) -> Match:
    match = db.get(Match, match_id)
    if not match:
        raise MatchNotFound(match_id)
    return match


def list_matches(db: Session, status: Optional[str] = None) -> List[Match]:
    statement = select(Match)
    if status:
        statement = statement.where(Match.status == normalize_status(status))
    statement = statement.order_by(Match.scheduled_at, Match.id)
    return db.exec(statement).all()


def apply_transition(
    match: Match,
    new_status: str,
    score_a: Optional[int] = None,
    score_b: Optional[int] = None
) -> Match:
    """
    Move a match to ``new_status`` in memory, enforcing forward-only moves.

    Finishing requires both final scores and derives the winner. Does not
    touch the database session.
    """
    if new_status not in ALLOWED_TRANSITIONS.get(match.status, set()):
        raise InvalidStatusTransition(match.id, match.status, new_status)

    if new_status == FINISHED:
        _check_score(score_a, "score_a")
        _check_score(score_b, "score_b")
        match.score_a = score_a
        match.score_b = score_b
        match.live_score_a = score_a
        match.live_score_b = score_b
        match.winner = determine_winner(score_a, score_b)

    match.status = new_status
    match.updated_at = datetime.now(UTC)
    return match


def _transition(
    db: Session,
    match_id: int,
    new_status: str,
    score_a: Optional[int] = None,
    score_b: Optional[int] = None
) -> Match:
    match = get_match(db, match_id)
    previous = match.status
    apply_transition(match, new_status, score_a, score_b)
    db.add(match)
    db.commit()
    db.refresh(match)
    logger.info(f"Match {match_id} moved from {previous} to {new_status}")
    return match


def start_match(db: Session, match_id: int) -> Match:
    return _transition(db, match_id, LIVE)


def finish_match(db: Session, match_id: int, score_a: int, score_b: int) -> Match:
    """Record the final result. Scoring is a separate step (see score_match)."""
    return _transition(db, match_id, FINISHED, score_a, score_b)


def cancel_match(db: Session, match_id: int) -> Match:
    return _transition(db, match_id, CANCELLED)


def update_live_score(db: Session, match_id: int, score_a: int, score_b: int) -> Match:
    match = get_match(db, match_id)
    if match.status != LIVE:
        raise ValidationError("Live score can only be updated on a live match",
                              match_id=match_id, status=match.status)
    _check_score(score_a, "score_a")
    _check_score(score_b, "score_b")

    match.live_score_a = score_a
    match.live_score_b = score_b
    match.updated_at = datetime.now(UTC)
    db.add(match)
    db.commit()
    db.refresh(match)
    return match


def next_upcoming_match(db: Session) -> Optional[Match]:
    statement = (
        select(Match)
        .where(Match.status == UPCOMING)
        .order_by(Match.scheduled_at, Match.id)
    )
    return db.exec(statement).first()
