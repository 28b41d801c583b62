"""Generate database session"""

from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.core.config import settings
from src.db.schema import Base


def create_session_factory(
    database_url: Optional[str] = None, echo: Optional[bool] = None
) -> sessionmaker[Session]:
    """Engine + session factory for the configured database. Ensures all tables are created."""
    url = database_url or settings.database_url
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    engine = create_engine(
        url,
        echo=settings.database_echo if echo is None else echo,
        connect_args=connect_args,
    )
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine)


def get_db(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
