from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
import os

# Postgres in deployment (DATABASE_URL=postgresql+psycopg2://...), sqlite file otherwise
SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./hr_requests.db")

_connect_args = {}
if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    # TestClient and uvicorn workers hand sessions across threads
    _connect_args = {"check_same_thread": False, "timeout": 30}

engine = create_engine(SQLALCHEMY_DATABASE_URL, future=True, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Single source of truth for Base
Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db() -> None:
    """Create tables for every mapped entity and arm the immutability guards."""
    # import for side effects: registers the mappers on Base.metadata
    from hrflow import models  # noqa: F401
    from hrflow.core.immutability import register_immutability_listeners

    register_immutability_listeners()
    Base.metadata.create_all(bind=engine)
