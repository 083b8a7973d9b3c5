# comedy_connect/infrastructure/db/session.py

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from sqlalchemy.engine import Engine
from contextlib import contextmanager

from comedy_connect.settings import get_settings


# -----------------------------
# Database URL
# -----------------------------
DATABASE_URL = get_settings().database_url


def _connect_args(url: str) -> dict:
    # SQLite is used by tests and local runs; writers wait on the file lock
    # instead of failing immediately.
    if url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": 30}
    return {}


def build_engine(url: str) -> Engine:
    return create_engine(
        url,
        echo=False,
        future=True,
        pool_pre_ping=True,
        connect_args=_connect_args(url),
    )


# -----------------------------
# Engine
# -----------------------------
engine: Engine = build_engine(DATABASE_URL)


# -----------------------------
# Base Class for Models
# -----------------------------
class Base(DeclarativeBase):
    pass


# -----------------------------
# Session Factory
# -----------------------------
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
)


# -----------------------------
# FastAPI dependency
# -----------------------------
def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# -----------------------------
# Context Manager (Non-FastAPI usage)
# -----------------------------
@contextmanager
def get_db_session(factory: sessionmaker = SessionLocal):
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
