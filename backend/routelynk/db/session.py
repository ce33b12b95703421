from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
import importlib.util


def normalize_database_url(url: str | None) -> str:
    if not url:
        raise RuntimeError("DATABASE_URL environment variable must be set")
    # If the provided URL is the plain 'postgresql://' (or legacy 'postgres://') SQLAlchemy
    # will try to load the default driver (psycopg2). We only depend on 'psycopg' v3, so
    # adjust the URL to use the 'psycopg' driver if psycopg2 is absent.
    psycopg2_present = importlib.util.find_spec("psycopg2") is not None
    if not psycopg2_present and url.startswith(("postgres://", "postgresql://")) and "+psycopg" not in url:
        # Normalize legacy prefix 'postgres://' -> 'postgresql://'
        if url.startswith("postgres://"):
            url = "postgresql://" + url[len("postgres://"):]
        url = url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def make_engine(url: str | None) -> Engine:
    url = normalize_database_url(url)
    if url.startswith("sqlite"):
        # Request handlers run in a threadpool; sqlite connections must be shareable.
        # Writers queue on the file lock instead of failing fast.
        return create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
    return create_engine(url, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
