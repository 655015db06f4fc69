"""Create the relay's tables"""

import logging

from peer_relay.db.base import Base
from peer_relay.db.models import Message, Peer  # noqa: F401  registers the tables
from peer_relay.db.session import engine as default_engine

logger = logging.getLogger("peer_relay.database")


def init_database(engine=None) -> None:
    """Create any missing tables. Existing tables and rows are left alone."""
    engine = engine or default_engine
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        # Connection strings may embed credentials; log the error type only
        logger.error(
            "Database initialization failed",
            extra={"error_type": type(e).__name__, "backend": engine.url.get_backend_name()},
        )
        raise

    logger.info(
        "Database initialized",
        extra={"tables": [table.name for table in Base.metadata.sorted_tables]},
    )


if __name__ == "__main__":
    init_database()
