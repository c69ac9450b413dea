from contextlib import contextmanager
from typing import Iterator
import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from quizmaster.core.config import settings
from quizmaster.core.errors import StorageFailure

logger = logging.getLogger(__name__)

connect_args = {"check_same_thread": False} if settings.is_sqlite() else {}

engine = create_engine(settings.DATABASE_URL, future=True, pool_pre_ping=True,
                       echo=settings.DATABASE_ECHO, connect_args=connect_args)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # ON DELETE CASCADE / SET NULL are no-ops in SQLite unless switched on per connection
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Commit everything done inside the block, or nothing.

    Service errors are re-raised untouched after the rollback; driver and
    constraint errors surface as ``StorageFailure``.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"Transaction rolled back: {exc}")
        raise StorageFailure("Could not commit changes") from exc
    except Exception:
        db.rollback()
        raise


def init_db(bind: Engine | None = None) -> None:
    """Create tables that do not exist yet."""
    from quizmaster.models.orm import Base

    Base.metadata.create_all(bind=bind or engine)
