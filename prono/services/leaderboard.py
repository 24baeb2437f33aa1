from typing import Any, Dict, List, Optional

from sqlmodel import Session, select, func

from ..exceptions import GroupNotFound, UserNotFound
from ..models.group import Group, GroupMembership
from ..models.prediction import Prediction
from ..models.user import User


def accuracy_percentage(correct: int, total: int) -> int:
    """Percentage of correct predictions, rounded half up; 0 with no predictions."""
    if total <= 0:
        return 0
    return (200 * correct + total) // (2 * total)


def sum_member_points(db: Session, user_id: int, group_id: int) -> int:
    statement = select(func.sum(Prediction.points_earned)).where(
        Prediction.user_id == user_id,
        Prediction.group_id == group_id
    )
    return db.exec(statement).first() or 0


def total_user_points(db: Session, user_id: int) -> int:
    """Points the user earned across every group."""
    statement = select(func.sum(Prediction.points_earned)).where(Prediction.user_id == user_id)
    return db.exec(statement).first() or 0


def recalculate_member_score(
    db: Session,
    user_id: int,
    group_id: int
) -> Optional[GroupMembership]:
    """
    Store the sum of the user's earned points in the group on their membership.

    Returns None if the user is no longer a member. Does not commit.

    The membership row is locked before summing, so two matches scored at
    the same time cannot each write a total that misses the other's points.
    Callers must lock memberships in a stable order.
    """
    statement = (
        select(GroupMembership)
        .where(
            GroupMembership.user_id == user_id,
            GroupMembership.group_id == group_id
        )
        .with_for_update()
    )
    membership = db.exec(statement).first()
    if not membership:
        return None

    membership.score = sum_member_points(db, user_id, group_id)
    db.add(membership)
    return membership


def _rank(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # Highest score first, ties broken by user id
    rows.sort(key=lambda row: (-row["score"], row["user_id"]))
    for i, row in enumerate(rows):
        row["rank"] = i + 1
    return rows


def get_leaderboard(db: Session, group_id: int) -> List[Dict[str, Any]]:
    """Group members ranked by cumulative group score."""
    group = db.get(Group, group_id)
    if not group:
        raise GroupNotFound(group_id)

    statement = (
        select(User.id, User.display_name, GroupMembership.score)
        .join(GroupMembership, GroupMembership.user_id == User.id)
        .where(GroupMembership.group_id == group_id)
        .order_by(GroupMembership.id)
    )
    results = db.exec(statement).all()

    return _rank([
        {
            "user_id": row[0],
            "display_name": row[1],
            "score": row[2] or 0
        }
        for row in results
    ])


def get_global_leaderboard(db: Session, limit: int = 50) -> List[Dict[str, Any]]:
    """All users ranked by the points they earned across every group."""
    statement = (
        select(
            User.id,
            User.display_name,
            func.sum(Prediction.points_earned).label("total_points")
        )
        .outerjoin(Prediction, Prediction.user_id == User.id)
        .group_by(User.id, User.display_name)
    )
    results = db.exec(statement).all()

    ranked = _rank([
        {
            "user_id": row[0],
            "display_name": row[1],
            "score": row[2] or 0
        }
        for row in results
    ])
    return ranked[:limit]


def get_user_group_stats(db: Session, user_id: int, group_id: int) -> Dict[str, Any]:
    """Points and prediction accuracy of one user within one group."""
    if not db.get(User, user_id):
        raise UserNotFound(user_id)
    if not db.get(Group, group_id):
        raise GroupNotFound(group_id)

    statement = select(Prediction).where(
        Prediction.user_id == user_id,
        Prediction.group_id == group_id
    )
    predictions = db.exec(statement).all()

    total_points = sum(p.points_earned or 0 for p in predictions)
    correct = sum(1 for p in predictions if p.is_correct)
    exact = sum(1 for p in predictions if p.is_exact_score)
    total = len(predictions)

    return {
        "user_id": user_id,
        "group_id": group_id,
        "total_points": total_points,
        "total_predictions": total,
        "correct_predictions": correct,
        "exact_scores": exact,
        "accuracy": accuracy_percentage(correct, total)
    }
