"""
Database inspection helpers for Peer Relay.

Used by the health endpoint and the setup script. Works against SQLite and
PostgreSQL alike.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError

from peer_relay.core.config import settings
from peer_relay.db.session import engine as default_engine

logger = logging.getLogger(__name__)

# Tables the relay cannot run without
REQUIRED_TABLES = ("peer", "message")

_VERSION_QUERIES = {
    "sqlite": "SELECT sqlite_version()",
    "postgresql": "SHOW server_version",
}


def get_database_type(database_url: Optional[str] = None) -> str:
    """Backend name of a database URL, e.g. ``sqlite`` or ``postgresql``"""
    try:
        return make_url(database_url or settings.DATABASE_URL).get_backend_name()
    except ArgumentError:
        return "unknown"


def get_database_info(engine: Optional[Engine] = None) -> Dict[str, Any]:
    """
    Connect once and describe the database.

    Returns:
        Dict with ``type``, ``connected``, ``version``, ``tables`` and
        ``error`` (the connection error message, or None)
    """
    engine = engine or default_engine
    db_type = engine.url.get_backend_name()
    info: Dict[str, Any] = {
        "type": db_type,
        "connected": False,
        "version": None,
        "tables": [],
        "error": None,
    }

    try:
        with engine.connect() as conn:
            info["connected"] = True
            query = _VERSION_QUERIES.get(db_type)
            if query:
                info["version"] = conn.execute(text(query)).scalar()
            info["tables"] = inspect(conn).get_table_names()
    except Exception as e:
        logger.error("Database connection error", extra={"error_type": type(e).__name__})
        info["error"] = str(e)

    return info


def missing_tables(tables: List[str]) -> List[str]:
    present = set(tables)
    return [name for name in REQUIRED_TABLES if name not in present]


def check_database_health(engine: Optional[Engine] = None) -> Dict[str, Any]:
    """
    Summarize whether the relay can use its database.

    ``status`` is ``unhealthy`` when the database is unreachable and
    ``warning`` when it is reachable but the relay tables are missing.
    """
    db_info = get_database_info(engine)
    missing = missing_tables(db_info["tables"])

    health: Dict[str, Any] = {
        "status": "healthy",
        "database_type": db_info["type"],
        "connected": db_info["connected"],
        "table_count": len(db_info["tables"]),
        "last_error": None,
    }

    if db_info["error"]:
        health["status"] = "unhealthy"
        health["last_error"] = db_info["error"]
    elif missing:
        health["status"] = "warning"
        health["last_error"] = f"Missing tables: {', '.join(missing)}"

    return health
