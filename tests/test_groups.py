import re

import pytest
from sqlmodel import select

from prono.exceptions import (
    AlreadyMember,
    GroupNotFound,
    InvalidInviteCode,
    NotGroupMember,
    UserNotFound,
    ValidationError,
)
from prono.models import Group, GroupMembership, Prediction
from prono.services import groups as groups_service
from prono.services.groups import (
    create_group,
    generate_invite_code,
    get_member_ids,
    join_group,
    leave_group,
    list_user_groups,
)


def test_generate_invite_code():
    code = generate_invite_code()
    assert re.fullmatch(r"[A-Z0-9]{10}", code)
    assert len(generate_invite_code(6)) == 6


def test_create_group_adds_creator_as_member(session, make_user):
    alice = make_user("Alice")

    group = create_group(session, "LCK Fans", alice.id, "Korean league only")

    assert group.id is not None
    assert group.name == "LCK Fans"
    assert group.description == "Korean league only"
    assert group.created_by_id == alice.id
    assert re.fullmatch(r"[A-Z0-9]{10}", group.invite_code)

    membership = session.exec(select(GroupMembership).where(GroupMembership.group_id == group.id)).one()
    assert membership.user_id == alice.id
    assert membership.score == 0


def test_create_group_retries_on_invite_code_collision(session, make_user, monkeypatch):
    alice = make_user("Alice")
    session.add(Group(name="Existing", invite_code="TAKEN00000", created_by_id=alice.id))
    session.commit()

    codes = iter(["TAKEN00000", "TAKEN00000", "FRESH00000"])
    monkeypatch.setattr(groups_service, "generate_invite_code", lambda: next(codes))

    group = create_group(session, "New", alice.id)

    assert group.invite_code == "FRESH00000"


def test_create_group_requires_name(session, make_user):
    alice = make_user("Alice")

    with pytest.raises(ValidationError):
        create_group(session, "   ", alice.id)


def test_create_group_unknown_creator(session):
    with pytest.raises(UserNotFound):
        create_group(session, "Ghosts", 404)


def test_join_group(session, make_user):
    alice = make_user("Alice")
    bob = make_user("Bob")
    group = create_group(session, "Friends", alice.id)

    membership = join_group(session, group.id, bob.id, group.invite_code.lower())

    assert membership.score == 0
    assert get_member_ids(session, group.id) == [alice.id, bob.id]


def test_join_group_with_wrong_code(session, make_user):
    alice = make_user("Alice")
    bob = make_user("Bob")
    group = create_group(session, "Friends", alice.id)

    with pytest.raises(InvalidInviteCode):
        join_group(session, group.id, bob.id, "WRONGCODE0")


def test_join_group_code_belongs_to_another_group(session, make_user):
    alice = make_user("Alice")
    bob = make_user("Bob")
    first = create_group(session, "First", alice.id)
    second = create_group(session, "Second", alice.id)

    with pytest.raises(InvalidInviteCode):
        join_group(session, second.id, bob.id, first.invite_code)


def test_join_group_twice(session, make_user):
    alice = make_user("Alice")
    group = create_group(session, "Friends", alice.id)

    with pytest.raises(AlreadyMember):
        join_group(session, group.id, alice.id, group.invite_code)


def test_rejoining_member_recovers_points(session, make_user, make_match):
    alice = make_user("Alice")
    bob = make_user("Bob")
    group = create_group(session, "Friends", alice.id)
    join_group(session, group.id, bob.id, group.invite_code)
    match = make_match()
    session.add(Prediction(
        user_id=bob.id, match_id=match.id, group_id=group.id,
        predicted_winner="team_a", points_earned=5, is_correct=True, is_exact_score=True
    ))
    session.commit()

    leave_group(session, group.id, bob.id)
    membership = join_group(session, group.id, bob.id, group.invite_code)

    assert membership.score == 5


def test_leave_group(session, make_user):
    alice = make_user("Alice")
    bob = make_user("Bob")
    group = create_group(session, "Friends", alice.id)
    join_group(session, group.id, bob.id, group.invite_code)

    leave_group(session, group.id, bob.id)

    assert get_member_ids(session, group.id) == [alice.id]


def test_leave_group_not_a_member(session, make_user):
    alice = make_user("Alice")
    bob = make_user("Bob")
    group = create_group(session, "Friends", alice.id)

    with pytest.raises(NotGroupMember):
        leave_group(session, group.id, bob.id)


def test_creator_cannot_leave(session, make_user):
    alice = make_user("Alice")
    group = create_group(session, "Friends", alice.id)

    with pytest.raises(ValidationError):
        leave_group(session, group.id, alice.id)

    assert get_member_ids(session, group.id) == [alice.id]


def test_leave_unknown_group(session, make_user):
    alice = make_user("Alice")

    with pytest.raises(GroupNotFound):
        leave_group(session, 99, alice.id)


def test_list_user_groups(session, make_user):
    alice = make_user("Alice")
    bob = make_user("Bob")
    mine = create_group(session, "Mine", alice.id)
    theirs = create_group(session, "Theirs", bob.id)
    join_group(session, theirs.id, alice.id, theirs.invite_code)
    create_group(session, "Not mine", bob.id)

    groups = list_user_groups(session, alice.id)

    assert [g["id"] for g in groups] == [mine.id, theirs.id]
    assert groups[1]["members"] == [bob.id, alice.id]
    assert groups[1]["created_by"] == bob.id
    assert all(g["score"] == 0 for g in groups)
