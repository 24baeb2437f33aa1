import logging
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Optional

from sqlmodel import Session, select

from ..config import EXACT_SCORE_BONUS, WINNER_POINTS
from ..exceptions import MatchNotFinished, MatchNotFound
from ..models.match import Match, TEAM_A, TEAM_B
from ..models.prediction import Prediction
from .leaderboard import recalculate_member_score
from .locks import MatchLockRegistry, scoring_locks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoringRules:
    winner_points: int = 3
    exact_score_bonus: int = 2

    @property
    def exact_score_points(self) -> int:
        return self.winner_points + self.exact_score_bonus


DEFAULT_RULES = ScoringRules(winner_points=WINNER_POINTS, exact_score_bonus=EXACT_SCORE_BONUS)


@dataclass(frozen=True)
class PredictionScore:
    is_correct: bool
    is_exact_score: bool
    points_earned: int


def determine_winner(score_a: int, score_b: int) -> Optional[str]:
    """Return the winning side, or None for a draw."""
    if score_a > score_b:
        return TEAM_A
    if score_a < score_b:
        return TEAM_B
    return None


def evaluate_prediction(
    prediction: Prediction,
    score_a: int,
    score_b: int,
    rules: ScoringRules = DEFAULT_RULES
) -> PredictionScore:
    """
    Score a single prediction against a final result.

    Scoring:
    - Wrong winner (or a draw, which no prediction can call): 0 points
    - Correct winner: winner_points (3)
    - Correct winner and exact score: winner_points + exact_score_bonus (5)

    A prediction without a score guess can never be exact.
    """
    actual_winner = determine_winner(score_a, score_b)

    is_correct = actual_winner is not None and prediction.predicted_winner == actual_winner
    is_exact_score = (
        is_correct
        and prediction.predicted_score_a == score_a
        and prediction.predicted_score_b == score_b
    )

    if is_exact_score:
        points = rules.exact_score_points
    elif is_correct:
        points = rules.winner_points
    else:
        points = 0

    return PredictionScore(
        is_correct=is_correct,
        is_exact_score=is_exact_score,
        points_earned=points
    )


def score_match(
    db: Session,
    match_id: int,
    rules: ScoringRules = DEFAULT_RULES,
    locks: MatchLockRegistry = scoring_locks
) -> dict:
    """
    Score every prediction on a finished match and refresh the group scores
    of everyone who predicted it.

    This is a full recompute: running it again on the same result writes the
    same values. It never modifies the match itself.

    Raises:
        MatchNotFound: no match with this id
        MatchNotFinished: the match has no final result yet
        ConcurrentScoringConflict: another scoring run holds this match
    """
    with locks.hold(match_id):
        match = db.get(Match, match_id)
        if not match:
            raise MatchNotFound(match_id)

        # Re-read in case another session finished the match since it was cached
        db.refresh(match)
        if not match.is_finished or not match.has_result:
            raise MatchNotFinished(match_id, match.status)

        try:
            statement = select(Prediction).where(Prediction.match_id == match_id)
            predictions = db.exec(statement).all()

            now = datetime.now(UTC)
            touched = set()
            for prediction in predictions:
                result = evaluate_prediction(prediction, match.score_a, match.score_b, rules)
                prediction.is_correct = result.is_correct
                prediction.is_exact_score = result.is_exact_score
                prediction.points_earned = result.points_earned
                prediction.updated_at = now
                db.add(prediction)
                touched.add((prediction.user_id, prediction.group_id))

            db.flush()

            memberships_updated = 0
            # Fixed order so concurrent scorers lock memberships the same way
            for user_id, group_id in sorted(touched):
                if recalculate_member_score(db, user_id, group_id) is not None:
                    memberships_updated += 1

            db.commit()
        except Exception:
            db.rollback()
            raise

    logger.info(
        f"Scored match {match_id} ({match.score_a}-{match.score_b}): "
        f"{len(predictions)} predictions, {memberships_updated} group scores"
    )

    return {
        "match_id": match_id,
        "winner": match.winner,
        "predictions_updated": len(predictions),
        "memberships_updated": memberships_updated
    }
