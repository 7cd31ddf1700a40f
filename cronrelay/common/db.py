from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from cronrelay.common.config import settings
from cronrelay.common.logging import get_logger

logger = get_logger(__name__)

def build_engine(url: str) -> Engine:
    """Engine for the trigger store; SQLite sessions are shared across API and worker threads."""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)

engine = build_engine(settings.database_url)
# rows returned by the trigger engine are read after their session closes
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

def init_db(bind: Engine | None = None) -> None:
    """Create the trigger and execution tables if they are missing."""
    from cronrelay.models.models import Base

    bind = bind if bind is not None else engine
    Base.metadata.create_all(bind=bind)
    logger.info("Trigger store ready (%s)", bind.dialect.name)

@contextmanager
def session_scope():
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

def is_postgres() -> bool:
    return engine.dialect.name == "postgresql"
