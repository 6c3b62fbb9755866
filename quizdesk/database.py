# quizdesk/database.py
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from quizdesk.config import settings

SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

connect_args = {}
if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    # FastAPI runs sync endpoints in a thread pool
    connect_args["check_same_thread"] = False

engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Standard FastAPI dependency that yields a DB session.
    Import it as:
        from quizdesk.database import get_db
    """
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """
    Creates tables that do not exist yet.
    Called from main.py at startup.
    """
    # models must be imported so they register on Base.metadata
    from quizdesk import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    _ensure_columns()


def _ensure_columns() -> None:
    """
    Adds columns introduced after a table was first created.
    create_all() never alters an existing table.
    """
    if engine.dialect.name != "sqlite":
        return
    with engine.begin() as conn:
        cols = {row[1] for row in conn.execute(text("PRAGMA table_info(quizzes)"))}
        if "next_item_id" not in cols:
            conn.execute(
                text("ALTER TABLE quizzes ADD COLUMN next_item_id INTEGER NOT NULL DEFAULT 1")
            )


@contextmanager
def db_session() -> Generator[Session, None, None]:
    """
    Context manager for code that needs a session outside a request.
    """
    db: Session = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
