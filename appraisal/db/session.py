from collections.abc import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from appraisal.core.config import settings


def _engine_options() -> dict:
    if settings.is_sqlite:
        # request handlers run in a threadpool
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(settings.DATABASE_URL, **_engine_options())

# Objects stay readable after commit; routers build their responses from them
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


def get_db() -> Iterator[Session]:
    """
    One session per request. Routers commit their own unit of work through
    `commit_or_409`; anything left pending is committed here, and any error
    rolls the whole request back.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
