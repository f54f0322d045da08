"""Request-scoped database sessions."""

from collections.abc import Generator

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from lms.db.engine import engine


def make_session_factory(bind: Engine) -> sessionmaker[Session]:
    # Attempt rows are returned to callers after commit; keep them loaded
    return sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)


SessionLocal = make_session_factory(engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a session per request; uncommitted work is rolled back on error."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
