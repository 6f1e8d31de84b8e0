"""
Initialize database tables.
"""
from autoblogger_backend.db.session import engine as default_engine
from autoblogger_backend.db.base import Base  # Import all models


def init_db(bind=None) -> None:
    """Initialize database tables."""
    Base.metadata.create_all(bind=bind or default_engine)
