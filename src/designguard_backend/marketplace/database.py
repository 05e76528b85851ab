# marketplace/database.py
import logging
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base, Session

from ..config import Config
from ..errors import DesignGuardError, PersistenceError

logger = logging.getLogger(__name__)

Base = declarative_base()


def utcnow() -> datetime:
    # naive UTC so values compare the same after a round trip through SQLite
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Database:
    """Engine, session factory and transaction boundaries for one store."""

    def __init__(self, url: str = Config.DATABASE_URL, **engine_kwargs):
        self.url = url
        connect_args = {"check_same_thread": False, "timeout": 30} if url.startswith("sqlite") else {}
        self.engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True, **engine_kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, autocommit=False, expire_on_commit=False)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def init_db(self):
        # import so every model registers on Base.metadata
        from . import models, chat_models  # noqa: F401
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database schema ensured (%s)", self.dialect)

    def get_db(self):
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    @contextmanager
    def session_scope(self):
        """One transaction: commit on success, roll back on any error."""
        db: Session = self.SessionLocal()
        try:
            yield db
            db.commit()
        except DesignGuardError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("Transaction rolled back: %s", e)
            raise PersistenceError() from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def dispose(self):
        self.engine.dispose()
