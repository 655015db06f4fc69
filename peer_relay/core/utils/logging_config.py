"""
Structured logging for Peer Relay.

Records are emitted as one JSON object per line. Every signaling connection
runs under its own correlation ID, stored in a context variable and stamped
on records by ``ConnectionContextFilter``, so the lines of one connection can
be grouped. Security-relevant events go to the ``security.*`` logger tree.
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Optional

from peer_relay.core.config import settings

correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Attributes every LogRecord has; anything else arrived through ``extra=``
_RECORD_ATTRS: FrozenSet[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "correlation_id", "taskName"}

# Substrings marking an extra field as sensitive. Handshake payloads count:
# they carry network addresses of the peers.
SENSITIVE_MARKERS: FrozenSet[str] = frozenset(
    {"secret", "token", "key", "password", "credential", "auth", "cookie", "content"}
)

REDACTED = "[REDACTED]"


class ConnectionContextFilter(logging.Filter):
    """Copy the current connection's correlation ID onto each record"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_ctx.get()
        return True


class StructuredFormatter(logging.Formatter):
    """
    Render records as JSON lines.

    Fields passed through ``extra=`` are nested under ``"extra"``. Unless
    ``include_sensitive`` is set, fields whose name looks like a credential
    or a payload are replaced by a placeholder.
    """

    def __init__(self, include_sensitive: bool = False):
        super().__init__()
        self.include_sensitive = include_sensitive

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        correlation_id = getattr(record, "correlation_id", None) or correlation_id_ctx.get()
        if correlation_id:
            entry["correlation_id"] = correlation_id

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {
            key: self._scrub(key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS
        }
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str)

    def _scrub(self, key: str, value: Any) -> Any:
        if self.include_sensitive:
            return value
        lowered = key.lower()
        if any(marker in lowered for marker in SENSITIVE_MARKERS):
            return REDACTED
        return value


def setup_logging(
    log_level: str = "INFO",
    enable_json: bool = True,
    include_sensitive: bool = False,
) -> None:
    """
    Install a single stdout handler on the root logger.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        enable_json: JSON lines when True, plain text otherwise
        include_sensitive: Keep credential and payload fields unredacted
    """
    if enable_json:
        formatter: logging.Formatter = StructuredFormatter(include_sensitive=include_sensitive)
    else:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)-7s [%(correlation_id)s] %(name)s: %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(ConnectionContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level.upper())
    root.addHandler(handler)

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "websockets"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def new_correlation_id() -> str:
    """Start a fresh correlation ID for the current connection"""
    correlation_id = uuid.uuid4().hex
    correlation_id_ctx.set(correlation_id)
    return correlation_id


def get_correlation_id() -> str:
    return correlation_id_ctx.get() or new_correlation_id()


def get_security_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"security.{name}")


def log_security_event(
    event_type: str,
    message: str,
    peer_id: Optional[str] = None,
    ip_address: Optional[str] = None,
    extra_data: Optional[Dict[str, Any]] = None,
    level: int = logging.INFO,
) -> None:
    """
    Record a security event.

    Args:
        event_type: Short machine-readable kind, e.g. ``reconnect_rejected``
        message: Human-readable description
        peer_id: Peer identifier involved, if any
        ip_address: Remote address of the connection, if known
        extra_data: Additional structured fields
        level: Logging level of the record
    """
    fields: Dict[str, Any] = {"event_type": event_type, "correlation_id": get_correlation_id()}
    if peer_id:
        fields["peer_id"] = peer_id
    if ip_address:
        fields["ip_address"] = ip_address
    if extra_data:
        fields.update(extra_data)

    get_security_logger("events").log(level, message, extra=fields)


def init_application_logging() -> None:
    """Configure logging from application settings"""
    verbose = settings.DEV_MODE or settings.DEBUG
    log_level = "DEBUG" if verbose else "INFO"

    # Plain text and unredacted fields in development only
    setup_logging(
        log_level=log_level,
        enable_json=not settings.DEV_MODE,
        include_sensitive=settings.DEV_MODE,
    )

    logging.getLogger("peer_relay.startup").info(
        "Structured logging initialized",
        extra={"dev_mode": settings.DEV_MODE, "log_level": log_level},
    )
