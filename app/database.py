# app/database.py
"""
Database connection, session management, and table creation.
Uses SQLAlchemy with PostgreSQL. All models are auto-imported here
so create_tables() creates every table in one call.
"""

from sqlalchemy import create_engine
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.config import settings

if settings.DATABASE_URL.startswith("sqlite"):
    # Local/test runs: one shared connection so every session sees the same DB
    engine = create_engine(
        settings.DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
else:
    engine = create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True,          # Auto-reconnect if DB connection drops
        pool_size=10,
        max_overflow=20,
        echo=False,                  # Set True to log all SQL queries (debug only)
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _load_models():
    """Import all models here so SQLAlchemy knows about them."""
    from app.models.user import User                 # noqa
    from app.models.api_key import ApiKey            # noqa
    from app.models.device import Device             # noqa
    from app.models.rfid_tag import RfidTag          # noqa
    from app.models.rfid_scan import RfidScan        # noqa


def create_tables():
    """Creates all DB tables on startup. Safe to call multiple times."""
    _load_models()
    Base.metadata.create_all(bind=engine)


def drop_tables():
    """Drops every table. Used by the test suite only."""
    _load_models()
    Base.metadata.drop_all(bind=engine)
