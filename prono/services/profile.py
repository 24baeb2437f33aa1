from typing import Any, Dict

from sqlmodel import Session, func, select

from ..models.group import GroupMembership
from ..models.prediction import Prediction
from .friends import count_friends
from .leaderboard import total_user_points
from .users import get_user


def get_user_profile(db: Session, user_id: int) -> Dict[str, Any]:
    """User details with totals over every group they have played in."""
    user = get_user(db, user_id)

    predictions_count = db.exec(
        select(func.count(Prediction.id)).where(Prediction.user_id == user_id)
    ).one()
    wins_count = db.exec(
        select(func.count(Prediction.id)).where(
            Prediction.user_id == user_id,
            Prediction.is_correct == True  # noqa: E712
        )
    ).one()
    groups_count = db.exec(
        select(func.count(GroupMembership.id)).where(GroupMembership.user_id == user_id)
    ).one()

    return {
        "id": user.id,
        "display_name": user.display_name,
        "email": user.email,
        "score": total_user_points(db, user_id),
        "predictions_count": predictions_count,
        "wins_count": wins_count,
        "groups_count": groups_count,
        "friends_count": count_friends(db, user_id),
    }
