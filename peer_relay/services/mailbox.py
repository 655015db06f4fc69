"""
Mailbox Store - durable peer registry and per-destination message queues
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy import DateTime, String, Text, delete, exists, insert, literal, or_, select
from sqlalchemy.orm import Session, sessionmaker

from peer_relay.core.schemas.signaling import MailboxMessage
from peer_relay.core.utils.logging_config import log_security_event
from peer_relay.db.models import Message, Peer

logger = logging.getLogger(__name__)

# Number of random identifiers tried before accepting a colliding one
MAX_ID_ATTEMPTS = 5


def _new_peer_id() -> str:
    return str(uuid.uuid4())


class MailboxStore:
    """
    Repository over the Peer and Message tables.

    One instance is built at startup and shared by every connection. Each
    method opens its own short-lived database session and commits before
    returning, so the store holds no state between calls. The methods are
    blocking; async callers run them in a worker thread.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        id_factory: Callable[[], str] = _new_peer_id,
    ):
        """Initialize the store

        Args:
            session_factory: Factory producing SQLAlchemy sessions
            id_factory: Generator of candidate peer identifiers
        """
        self._session_factory = session_factory
        self._id_factory = id_factory

    def _session(self) -> Session:
        return self._session_factory()

    def peer_exists(self, peer_id: str) -> bool:
        with self._session() as db:
            found = db.scalar(select(Peer.id).where(Peer.id == peer_id).limit(1))
        return found is not None

    def create_peer(self, now: Optional[datetime] = None) -> str:
        """Register a new peer under a fresh random identifier

        Candidates are checked against the registry up to MAX_ID_ATTEMPTS
        times. If every candidate collides the last one is inserted anyway
        and the event is reported as an alarm.

        Returns:
            The new peer identifier
        """
        peer_id = None
        for attempt in range(1, MAX_ID_ATTEMPTS + 1):
            peer_id = self._id_factory()
            if not self.peer_exists(peer_id):
                break
            logger.warning(
                "Peer identifier collision",
                extra={"attempt": attempt, "max_attempts": MAX_ID_ATTEMPTS},
            )
        else:
            log_security_event(
                "peer_id_collision",
                "Peer identifier generation exhausted all attempts",
                peer_id=peer_id,
                extra_data={"max_attempts": MAX_ID_ATTEMPTS},
                level=logging.WARNING,
            )

        with self._session() as db, db.begin():
            db.add(Peer(id=peer_id, created_at=now or datetime.now(timezone.utc)))

        logger.info("Created peer", extra={"peer_id": peer_id})
        return peer_id

    def delete_peer_and_messages(self, peer_id: str) -> None:
        """Remove a peer together with every message it sent or is owed"""
        with self._session() as db, db.begin():
            result = db.execute(
                delete(Message)
                .where(or_(Message.source == peer_id, Message.destination == peer_id))
                .execution_options(synchronize_session=False)
            )
            db.execute(
                delete(Peer)
                .where(Peer.id == peer_id)
                .execution_options(synchronize_session=False)
            )

        logger.info(
            "Deleted peer",
            extra={"peer_id": peer_id, "messages_removed": result.rowcount},
        )

    def enqueue(
        self,
        source: str,
        destination: str,
        kind: str,
        content: str,
        now: Optional[datetime] = None,
    ) -> bool:
        """Queue one message if its destination peer exists

        The existence check and the insert are a single INSERT ... SELECT
        statement, so a message can never be queued for a peer deleted in
        the meantime.

        Returns:
            True if the message was queued, False if the destination is unknown
        """
        row = select(
            literal(source, String),
            literal(destination, String),
            literal(kind, String),
            literal(content, Text),
            literal(now or datetime.now(timezone.utc), DateTime(timezone=True)),
        ).where(exists().where(Peer.id == destination))

        with self._session() as db, db.begin():
            result = db.execute(
                insert(Message).from_select(
                    ["source", "destination", "type", "content", "created_at"], row
                )
            )

        return result.rowcount > 0

    def drain_all(self, destination: str) -> List[MailboxMessage]:
        """Atomically take every message queued for a destination

        Selection and deletion happen in a single DELETE ... RETURNING
        statement, so a message is handed to at most one drain.

        Returns:
            The removed messages, in no particular order
        """
        with self._session() as db, db.begin():
            rows = db.execute(
                delete(Message)
                .where(Message.destination == destination)
                .returning(Message.source, Message.type, Message.content)
                .execution_options(synchronize_session=False)
            ).all()

        return [
            MailboxMessage(type=row.type, source=row.source, content=row.content)
            for row in rows
        ]
