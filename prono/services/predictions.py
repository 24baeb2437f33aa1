from datetime import datetime, UTC
from typing import List, Optional

from sqlmodel import Session, select

from ..config import ALLOW_LIVE_PREDICTIONS
from ..exceptions import PredictionRejected
from ..models.match import Match, SIDES, TEAM_A, LIVE, UPCOMING
from ..models.prediction import Prediction
from .groups import get_group, require_membership
from .matches import get_match


def _check_match_open(match: Match, allow_live: bool) -> None:
    if match.status == UPCOMING:
        return
    if match.status == LIVE and allow_live:
        return
    raise PredictionRejected(
        "Predictions are closed for this match",
        match_id=match.id,
        status=match.status
    )


def _check_scores(
    predicted_winner: str,
    score_a: Optional[int],
    score_b: Optional[int]
) -> None:
    if predicted_winner not in SIDES:
        raise PredictionRejected("Predicted winner must be team_a or team_b",
                                 predicted_winner=predicted_winner)

    if score_a is None and score_b is None:
        return
    if score_a is None or score_b is None:
        raise PredictionRejected("Both score guesses are required when guessing a score")

    for value in (score_a, score_b):
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise PredictionRejected("Score guesses must be non-negative integers",
                                     predicted_score_a=score_a, predicted_score_b=score_b)

    guessed_winner_leads = score_a > score_b if predicted_winner == TEAM_A else score_b > score_a
    if not guessed_winner_leads:
        raise PredictionRejected("Score guess does not match the predicted winner",
                                 predicted_winner=predicted_winner,
                                 predicted_score_a=score_a, predicted_score_b=score_b)


def submit_prediction(
    db: Session,
    user_id: int,
    group_id: int,
    match_id: int,
    predicted_winner: str,
    predicted_score_a: Optional[int] = None,
    predicted_score_b: Optional[int] = None,
    allow_live: bool = ALLOW_LIVE_PREDICTIONS
) -> Prediction:
    """
    Create or edit the user's prediction for a match within a group.

    Only one prediction exists per (user, match, group); submitting again
    edits it in place. Matches that are finished or cancelled are closed,
    live matches are closed unless ``allow_live`` is set.
    """
    require_membership(db, group_id, user_id)
    match = get_match(db, match_id)
    _check_match_open(match, allow_live)
    _check_scores(predicted_winner, predicted_score_a, predicted_score_b)

    statement = select(Prediction).where(
        Prediction.user_id == user_id,
        Prediction.match_id == match_id,
        Prediction.group_id == group_id
    )
    prediction = db.exec(statement).first()

    if prediction:
        # Update existing
        prediction.predicted_winner = predicted_winner
        prediction.predicted_score_a = predicted_score_a
        prediction.predicted_score_b = predicted_score_b
        prediction.updated_at = datetime.now(UTC)
    else:
        # Create new
        prediction = Prediction(
            user_id=user_id,
            match_id=match_id,
            group_id=group_id,
            predicted_winner=predicted_winner,
            predicted_score_a=predicted_score_a,
            predicted_score_b=predicted_score_b
        )

    db.add(prediction)
    db.commit()
    db.refresh(prediction)
    return prediction


def list_group_predictions(
    db: Session,
    group_id: int,
    match_id: Optional[int] = None
) -> List[Prediction]:
    get_group(db, group_id)

    statement = select(Prediction).where(Prediction.group_id == group_id)
    if match_id is not None:
        statement = statement.where(Prediction.match_id == match_id)
    statement = statement.order_by(Prediction.match_id, Prediction.id)
    return db.exec(statement).all()


def prediction_to_dict(prediction: Prediction) -> dict:
    return {
        "id": prediction.id,
        "match_id": prediction.match_id,
        "user_id": prediction.user_id,
        "group_id": prediction.group_id,
        "predicted_winner": prediction.predicted_winner,
        "predicted_score_a": prediction.predicted_score_a,
        "predicted_score_b": prediction.predicted_score_b,
        "is_correct": prediction.is_correct,
        "is_exact_score": prediction.is_exact_score,
        "points_earned": prediction.points_earned
    }
