from pathlib import Path
from typing import Dict, Any

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from peer_relay.core.config import settings


# Determine database-specific connection arguments
def get_connect_args(database_url: str) -> Dict[str, Any]:
    """Get database-specific connection arguments"""
    if database_url.startswith("sqlite"):
        # Store calls run in the threadpool, so the connection crosses threads
        return {"check_same_thread": False}
    return {}


def ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database"""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return
    if url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


def create_db_engine(database_url: str):
    ensure_sqlite_directory(database_url)
    return create_engine(
        database_url,
        connect_args=get_connect_args(database_url),
    )


# Create database engine with appropriate connection args
engine = create_db_engine(settings.DATABASE_URL)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


