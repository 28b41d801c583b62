"""
Pytest will auto-discover / import this file called 'conftest.py'. ]
This file defines fixtures/variables required for testing multiple layers.
"""

import random
from typing import Generator

import pytest
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.db.memory_store import InMemoryRemoteStore
from src.db.records import Records
from src.db.schema import Base
from src.services.notifier import InMemoryNotifier
from src.services.room_service import RoomService
from src.services.tournament_service import TournamentService
from src.services.wallet_service import WalletService

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)


@pytest.fixture
def db_session_repo() -> Generator[Session, None, None]:
    """Connection to a test database. Tables are removed at teardown to make unit tests of repository independent of each other."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        Base.metadata.drop_all(bind=engine)
        db.close()


@pytest.fixture
def db_session_shared() -> Generator[Session, None, None]:
    """Connection to a test database. Mock real setup with multiple sessions connecting to the same engine / database tables."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


# --- IN-MEMORY COLLABORATORS ---
@pytest.fixture
def store() -> InMemoryRemoteStore:
    return InMemoryRemoteStore()


@pytest.fixture
def records(store: InMemoryRemoteStore) -> Records:
    return Records(store)


@pytest.fixture
def notifier() -> InMemoryNotifier:
    return InMemoryNotifier()


@pytest.fixture
def wallet_service(records: Records) -> WalletService:
    return WalletService(records)


@pytest.fixture
def room_service(records: Records) -> RoomService:
    """Seeded, so dice rolls are reproducible."""
    return RoomService(records, rng=random.Random(7))


@pytest.fixture
def tournament_service(
    records: Records,
    room_service: RoomService,
    wallet_service: WalletService,
    notifier: InMemoryNotifier,
) -> TournamentService:
    return TournamentService(records, room_service, wallet_service, notifier, rng=random.Random(11))
