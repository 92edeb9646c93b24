import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from tourney.database import get_session  # noqa: E402
from tourney.main import app  # noqa: E402
from tourney.models import Pool, PoolTeam, Team, Tournament  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. Tables created before and dropped after every test
# 4. App dependency overridden to use test_engine (see client_fixture)
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a freshly created schema"""
    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    Override MUST be set BEFORE TestClient() and stay in place
    for the entire duration. This ensures the app never uses its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def league(session: Session):
    """
    Tournament with two pools:
      Pool A: 4 teams (6 matches)
      Pool B: 3 teams (3 matches)
    """
    tournament = Tournament(name="Spring League", number_of_groups=2, teams_per_group=4)
    session.add(tournament)
    session.commit()
    session.refresh(tournament)

    teams = [Team(team_name=f"Team {i}") for i in range(1, 8)]
    session.add_all(teams)
    session.commit()
    for team in teams:
        session.refresh(team)

    pool_a = Pool(tournament_id=tournament.id, pool_name="A")
    pool_b = Pool(tournament_id=tournament.id, pool_name="B")
    session.add_all([pool_a, pool_b])
    session.commit()
    session.refresh(pool_a)
    session.refresh(pool_b)

    for team in teams[:4]:
        session.add(PoolTeam(pool_id=pool_a.id, team_id=team.id))
    for team in teams[4:]:
        session.add(PoolTeam(pool_id=pool_b.id, team_id=team.id))
    session.commit()

    return {
        "tournament_id": tournament.id,
        "team_ids": [t.id for t in teams],
        "pool_a_id": pool_a.id,
        "pool_b_id": pool_b.id,
    }
