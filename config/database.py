"""
Pelecard Receipts - Database Configuration
===========================================
Engine/session factory for the database-backed transaction store.
Only used when STORE_BACKEND=database.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

Base = declarative_base()


def make_session_factory(database_url: str):
    """Create an engine for the given URL and return a bound sessionmaker."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Requests run on the event loop thread and the threadpool
        connect_args["check_same_thread"] = False

    engine = create_engine(
        database_url,
        connect_args=connect_args,
        pool_pre_ping=True,
    )
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_tables(session_factory) -> None:
    """Create any missing tables (safe for existing tables)."""
    # Import models so Base can see them
    from modules.receipt.models import RegistrationRecord  # noqa: F401
    Base.metadata.create_all(bind=session_factory.kw["bind"])
