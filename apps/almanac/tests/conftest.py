"""
Pytest Configuration for Almanac Tests
======================================

Fixtures and configuration for testing the almanac engine against an
in-memory SQLite database.
"""

import pytest
import sys
from pathlib import Path

# Add almanac package to path
almanac_path = Path(__file__).parent.parent
sys.path.insert(0, str(almanac_path))

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import almanac.models  # noqa: E402,F401
from almanac.database import Base, SyncSessionLocal, set_engine  # noqa: E402
from almanac.store import SqlAlchemyStore  # noqa: E402


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (runs the job runners end to end)"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


@pytest.fixture
def engine():
    """Fresh in-memory database with all tables."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def bound_engine(engine):
    """Engine installed as the process engine, for the job runners."""
    set_engine(engine)
    yield engine
    set_engine(None)


@pytest.fixture
def session(engine):
    session = SyncSessionLocal(bind=engine)
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def store(session):
    return SqlAlchemyStore(session)


@pytest.fixture
def nation(store):
    from almanac.models import Nation
    return store.create(Nation, {"name": "Turuliand", "membership": "VCC", "capital": "Vorlan"})


@pytest.fixture
def league(store, nation):
    """Top flight, 18 teams."""
    from almanac.models import League
    return store.create(League, {
        "nation_id": nation.id,
        "name": "Turuliand Premier Division",
        "tier": 1,
        "number_of_teams": 18,
    })


@pytest.fixture
def second_tier_league(store, nation):
    from almanac.models import League
    return store.create(League, {
        "nation_id": nation.id,
        "name": "Turuliand First Division",
        "tier": 2,
        "number_of_teams": 18,
    })


CLUB_NAMES = [
    "Vorlan United", "Ashby Town", "Kelmar Rovers", "Durnholt City",
    "Brask Athletic", "Orrin Wanderers", "Felsby Albion", "Tarn Harriers",
    "Quell Rangers", "Mirefield", "Holt Sporting", "Caddon Celtic",
    "Lowmere", "Penhal Villa", "Sarrow Borough", "Greywater", "Estin Park",
    "Ulvane", "Nethercross", "Rook Valley",
]


@pytest.fixture
def make_rows():
    """
    Factory for division rows.

    make_rows(18) -> 18 rows for the first 18 sample clubs, position i has
    (18 - i) wins so the table is consistent.
    """
    from almanac.schemas import TableRow

    def _make(count, names=None, overrides=None):
        names = names or CLUB_NAMES[:count]
        rows = []
        for position, name in enumerate(names, 1):
            fields = {
                "position": position,
                "club_name": name,
                "won": count - position,
                "drawn": 2,
                "lost": position - 1,
                "goals_for": 40 - position,
                "goals_against": 10 + position,
                "points": (count - position) * 3 + 2,
            }
            fields.update((overrides or {}).get(position, {}))
            rows.append(TableRow(**fields))
        return rows

    return _make
