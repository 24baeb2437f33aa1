import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from main import app
from prono.database import get_session
from prono.models import Group, GroupMembership, Match, Prediction, User
from prono.services.locks import MatchLockRegistry

# Create in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@pytest.fixture(name="session")
def session_fixture():
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="locks")
def locks_fixture():
    """Fresh lock registry so tests never share lock state."""
    return MatchLockRegistry(timeout=0.1)


@pytest.fixture(name="make_user")
def make_user_fixture(session: Session):
    def make_user(display_name: str) -> User:
        user = User(
            display_name=display_name,
            email=f"{display_name.lower().replace(' ', '.')}@example.com"
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return make_user


@pytest.fixture(name="make_group")
def make_group_fixture(session: Session):
    def make_group(creator: User, members=(), name: str = "Friends", invite_code: str = None) -> Group:
        group = Group(
            name=name,
            invite_code=invite_code or f"CODE{creator.id:06d}",
            created_by_id=creator.id
        )
        session.add(group)
        session.commit()
        session.refresh(group)

        for user in (creator, *members):
            session.add(GroupMembership(group_id=group.id, user_id=user.id, score=0))
        session.commit()
        return group

    return make_group


@pytest.fixture(name="make_match")
def make_match_fixture(session: Session):
    def make_match(team_a: str = "T1", team_b: str = "Gen.G", **fields) -> Match:
        match = Match(team_a=team_a, team_b=team_b, tournament="Worlds", **fields)
        session.add(match)
        session.commit()
        session.refresh(match)
        return match

    return make_match


@pytest.fixture(name="make_prediction")
def make_prediction_fixture(session: Session):
    def make_prediction(user: User, match: Match, group: Group, winner: str,
                        score_a: int = None, score_b: int = None) -> Prediction:
        prediction = Prediction(
            user_id=user.id,
            match_id=match.id,
            group_id=group.id,
            predicted_winner=winner,
            predicted_score_a=score_a,
            predicted_score_b=score_b
        )
        session.add(prediction)
        session.commit()
        session.refresh(prediction)
        return prediction

    return make_prediction


@pytest.fixture(name="file_engine")
def file_engine_fixture(tmp_path):
    """On-disk database, so each thread's session gets its own connection."""
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'prono.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    SQLModel.metadata.create_all(file_engine)
    yield file_engine
    file_engine.dispose()
