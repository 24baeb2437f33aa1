import logging
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional

from sqlmodel import Session, func, or_, and_, select

from ..exceptions import (
    FriendNotFound,
    FriendRequestExists,
    FriendRequestNotFound,
    NotFoundError,
    NotRequestReceiver,
    ValidationError,
)
from ..models.friend import FriendRequest, ACCEPTED, PENDING
from ..models.user import User
from .leaderboard import total_user_points
from .users import get_user, get_user_by_email

logger = logging.getLogger(__name__)


def _between(user_id: int, other_id: int):
    return or_(
        and_(FriendRequest.requester_id == user_id, FriendRequest.receiver_id == other_id),
        and_(FriendRequest.requester_id == other_id, FriendRequest.receiver_id == user_id),
    )


def _involving(user_id: int):
    return or_(FriendRequest.requester_id == user_id, FriendRequest.receiver_id == user_id)


def find_request_between(db: Session, user_id: int, other_id: int) -> Optional[FriendRequest]:
    return db.exec(select(FriendRequest).where(_between(user_id, other_id))).first()


def send_friend_request(db: Session, user_id: int, email: str) -> FriendRequest:
    """
    Ask the user registered under ``email`` to become a friend.

    Only one request may exist between two users, whichever side sent it.
    """
    get_user(db, user_id)

    email = (email or "").strip().lower()
    if not email:
        raise ValidationError("Email is required")

    target = get_user_by_email(db, email)
    if not target:
        raise NotFoundError("User not found", email=email)
    if target.id == user_id:
        raise ValidationError("Cannot add yourself as a friend")

    if find_request_between(db, user_id, target.id):
        raise FriendRequestExists(user_id, target.id)

    request = FriendRequest(requester_id=user_id, receiver_id=target.id)
    db.add(request)
    db.commit()
    db.refresh(request)

    logger.info(f"User {user_id} sent a friend request to user {target.id}")
    return request


def list_friend_requests(db: Session, user_id: int) -> List[Dict[str, Any]]:
    """Pending requests the user has received, oldest first."""
    get_user(db, user_id)

    statement = (
        select(FriendRequest, User)
        .join(User, User.id == FriendRequest.requester_id)
        .where(FriendRequest.receiver_id == user_id, FriendRequest.status == PENDING)
        .order_by(FriendRequest.id)
    )
    return [
        {
            "id": request.id,
            "from_user_id": requester.id,
            "from_display_name": requester.display_name,
            "status": request.status,
            "created_at": request.created_at,
        }
        for request, requester in db.exec(statement).all()
    ]


def _pending_request_for(db: Session, request_id: int, user_id: int) -> FriendRequest:
    request = db.get(FriendRequest, request_id)
    if not request or request.status != PENDING:
        raise FriendRequestNotFound(request_id)
    if request.receiver_id != user_id:
        raise NotRequestReceiver(request_id, user_id)
    return request


def accept_friend_request(db: Session, request_id: int, user_id: int) -> FriendRequest:
    request = _pending_request_for(db, request_id, user_id)

    request.status = ACCEPTED
    request.updated_at = datetime.now(UTC)
    db.add(request)
    db.commit()
    db.refresh(request)
    return request


def reject_friend_request(db: Session, request_id: int, user_id: int) -> None:
    request = _pending_request_for(db, request_id, user_id)

    # Deleted so the requester may ask again later
    db.delete(request)
    db.commit()


def list_friends(db: Session, user_id: int) -> List[Dict[str, Any]]:
    """Accepted friends with their points across all groups."""
    get_user(db, user_id)

    statement = (
        select(FriendRequest)
        .where(_involving(user_id), FriendRequest.status == ACCEPTED)
        .order_by(FriendRequest.id)
    )

    friends = []
    for request in db.exec(statement).all():
        friend_id = request.receiver_id if request.requester_id == user_id else request.requester_id
        friend = db.get(User, friend_id)
        friends.append({
            "id": friend.id,
            "display_name": friend.display_name,
            "score": total_user_points(db, friend.id),
        })
    return friends


def count_friends(db: Session, user_id: int) -> int:
    statement = select(func.count(FriendRequest.id)).where(
        _involving(user_id),
        FriendRequest.status == ACCEPTED
    )
    return db.exec(statement).one()


def remove_friend(db: Session, user_id: int, friend_id: int) -> None:
    statement = select(FriendRequest).where(
        _between(user_id, friend_id),
        FriendRequest.status == ACCEPTED
    )
    request = db.exec(statement).first()
    if not request:
        raise FriendNotFound(user_id, friend_id)

    db.delete(request)
    db.commit()
