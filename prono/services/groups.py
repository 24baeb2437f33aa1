import logging
import random
import string
from typing import Any, Dict, List

from sqlmodel import Session, select

from ..config import INVITE_CODE_LENGTH
from ..exceptions import (
    AlreadyMember,
    GroupNotFound,
    InvalidInviteCode,
    NotGroupMember,
    ValidationError,
)
from ..models.group import Group, GroupMembership
from .leaderboard import recalculate_member_score
from .users import get_user

logger = logging.getLogger(__name__)

INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_invite_code(length: int = INVITE_CODE_LENGTH) -> str:
    """Generate a random alphanumeric invite code."""
    return ''.join(random.choices(INVITE_CODE_ALPHABET, k=length))


def _unique_invite_code(db: Session) -> str:
    code = generate_invite_code()
    while db.exec(select(Group).where(Group.invite_code == code)).first():
        code = generate_invite_code()
    return code


def get_group(db: Session, group_id: int) -> Group:
    group = db.get(Group, group_id)
    if not group:
        raise GroupNotFound(group_id)
    return group


def get_membership(db: Session, group_id: int, user_id: int):
    statement = select(GroupMembership).where(
        GroupMembership.group_id == group_id,
        GroupMembership.user_id == user_id
    )
    return db.exec(statement).first()


def require_membership(db: Session, group_id: int, user_id: int) -> GroupMembership:
    get_group(db, group_id)
    membership = get_membership(db, group_id, user_id)
    if not membership:
        raise NotGroupMember(group_id, user_id)
    return membership


def get_member_ids(db: Session, group_id: int) -> List[int]:
    statement = (
        select(GroupMembership.user_id)
        .where(GroupMembership.group_id == group_id)
        .order_by(GroupMembership.id)
    )
    return list(db.exec(statement).all())


def group_to_dict(db: Session, group: Group) -> Dict[str, Any]:
    return {
        "id": group.id,
        "name": group.name,
        "description": group.description,
        "invite_code": group.invite_code,
        "created_by": group.created_by_id,
        "members": get_member_ids(db, group.id),
        "created_at": group.created_at,
    }


def create_group(
    db: Session,
    name: str,
    created_by_id: int,
    description: str = ""
) -> Group:
    """Create a group with a fresh invite code; the creator joins it."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Group name is required")
    get_user(db, created_by_id)

    group = Group(
        name=name,
        description=description or "",
        invite_code=_unique_invite_code(db),
        created_by_id=created_by_id
    )
    db.add(group)
    db.flush()

    db.add(GroupMembership(group_id=group.id, user_id=created_by_id, score=0))
    db.commit()
    db.refresh(group)

    logger.info(f"Group {group.id} created by user {created_by_id}")
    return group


def join_group(db: Session, group_id: int, user_id: int, invite_code: str) -> GroupMembership:
    get_user(db, user_id)

    code = (invite_code or "").strip().upper()
    statement = select(Group).where(Group.id == group_id, Group.invite_code == code)
    group = db.exec(statement).first()
    if not group:
        raise InvalidInviteCode(group_id)

    if get_membership(db, group_id, user_id):
        raise AlreadyMember(group_id, user_id)

    membership = GroupMembership(group_id=group_id, user_id=user_id, score=0)
    db.add(membership)
    db.flush()

    # Predictions survive leaving, so a returning member gets their points back
    recalculate_member_score(db, user_id, group_id)
    db.commit()
    db.refresh(membership)
    return membership


def leave_group(db: Session, group_id: int, user_id: int) -> None:
    group = get_group(db, group_id)
    membership = get_membership(db, group_id, user_id)
    if not membership:
        raise NotGroupMember(group_id, user_id)

    if group.created_by_id == user_id:
        raise ValidationError("The group creator cannot leave the group", group_id=group_id)

    db.delete(membership)
    db.commit()


def list_user_groups(db: Session, user_id: int) -> List[Dict[str, Any]]:
    """Groups the user belongs to, with the user's score in each."""
    get_user(db, user_id)

    statement = (
        select(Group, GroupMembership)
        .join(GroupMembership, GroupMembership.group_id == Group.id)
        .where(GroupMembership.user_id == user_id)
        .order_by(GroupMembership.id)
    )
    results = db.exec(statement).all()

    groups = []
    for group, membership in results:
        entry = group_to_dict(db, group)
        entry["score"] = membership.score
        groups.append(entry)
    return groups
