"""
Peer Relay application.

Importing this module configures logging, creates missing tables and
builds the FastAPI app serving the signaling WebSocket and health checks.
"""

import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from peer_relay import __version__
from peer_relay.api import health, signaling
from peer_relay.core.config import settings
from peer_relay.core.limiter import limiter
from peer_relay.core.utils.logging_config import init_application_logging
from peer_relay.db.init_db import init_database

init_application_logging()

logger = logging.getLogger("peer_relay.main")

init_database()

app = FastAPI(
    title=settings.APP_NAME,
    description="Store-and-forward signaling relay for peer-to-peer handshakes",
    version=__version__,
)

# SlowAPI looks the limiter up on app.state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(signaling.router)
app.include_router(health.router)

logger.info(
    "Peer Relay started",
    extra={
        "version": __version__,
        "http_rate_limit": settings.rate_limit_http_endpoints,
        "poll_interval_ms": settings.PEER_POLL_INTERVAL,
    },
)

if not settings.SECRET_KEY:
    logger.warning("SECRET_KEY is not set; all signaling connections will be refused")
