"""
Relay Session - per-connection identity state machine
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

from starlette.concurrency import run_in_threadpool

from peer_relay.core.errors import (
    BadRequest,
    ConnectionTerminated,
    ContentTooLarge,
    Forbidden,
    NotFound,
    PreconditionFailed,
    TooManyRequests,
    Unauthorized,
)
from peer_relay.core.limiter import DEFAULT_POLL_INTERVAL_MS, PollRateLimiter
from peer_relay.core.schemas.signaling import (
    MAX_CONTENT_LENGTH,
    MailboxMessage,
    MessageType,
    OpenResult,
)
from peer_relay.core.security import access_key_matches, issue_token, verify_token
from peer_relay.core.utils.logging_config import log_security_event
from peer_relay.services.mailbox import MailboxStore

logger = logging.getLogger(__name__)

_MESSAGE_TYPES = {member.value for member in MessageType}


def now_ms() -> int:
    """Milliseconds since the Unix epoch."""
    return int(time.time() * 1000)


class SessionState(str, Enum):
    """Lifecycle of a signaling connection"""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


class AuthDeadline:
    """
    Cancellable timer that reclaims connections which never authenticate.

    ``on_expire`` runs once, after ``timeout`` seconds, unless ``cancel`` was
    called first. Cancelling after the timer fired, or firing after a
    cancel, does nothing.
    """

    def __init__(self, timeout: float, on_expire: Callable[[], Awaitable[Any]]):
        self.timeout = timeout
        self._on_expire = on_expire
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False
        self.fired = False

    def start(self) -> None:
        if self._task is None and not self._cancelled:
            self._task = asyncio.create_task(self._run())

    def cancel(self) -> None:
        self._cancelled = True
        # Once fired, the expiry callback may itself end up here; leave it running
        if self._task is not None and not self.fired and not self._task.done():
            self._task.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def _run(self) -> None:
        await asyncio.sleep(self.timeout)
        if self._cancelled:
            return
        self.fired = True
        await self._on_expire()


class RelaySession:
    """
    Identity and permissions of one signaling connection.

    A session starts unauthenticated, becomes bound to exactly one peer id
    through ``open`` or ``reconnect`` and keeps that id until the connection
    ends or the peer is destroyed. Every operation checks the state before
    touching the store. Identity changes are serialized with a lock, so
    overlapping ``open``/``reconnect`` calls on one connection cannot both win.
    """

    def __init__(
        self,
        store: MailboxStore,
        secret_key: str,
        *,
        api_key: Optional[str] = None,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        clock: Callable[[], int] = now_ms,
        ip_address: Optional[str] = None,
    ):
        self.store = store
        self._secret_key = secret_key
        self._api_key = api_key
        self._clock = clock
        self._poll_limiter = PollRateLimiter(poll_interval_ms)
        self._identity_lock = asyncio.Lock()
        self._deadline: Optional[AuthDeadline] = None
        self.ip_address = ip_address
        self.state = SessionState.UNAUTHENTICATED
        self.peer_id: Optional[str] = None

    @property
    def last_poll_at(self) -> Optional[int]:
        return self._poll_limiter.last_poll_at

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_auth_deadline(
        self, timeout: float, on_expire: Callable[[], Awaitable[Any]]
    ) -> AuthDeadline:
        """Arm the timer that closes the connection if it never authenticates"""

        async def expire() -> None:
            if self.state is SessionState.UNAUTHENTICATED:
                logger.info("Closing unauthenticated connection", extra={"timeout": timeout})
                await on_expire()

        self._deadline = AuthDeadline(timeout, expire)
        self._deadline.start()
        return self._deadline

    def close(self) -> None:
        if self._deadline is not None:
            self._deadline.cancel()
        self.state = SessionState.CLOSED

    def _authenticate(self, peer_id: str) -> None:
        self.peer_id = peer_id
        self.state = SessionState.AUTHENTICATED
        if self._deadline is not None:
            self._deadline.cancel()

    def _require_authenticated(self) -> str:
        if self.state is not SessionState.AUTHENTICATED or self.peer_id is None:
            raise PreconditionFailed()
        return self.peer_id

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def open(self, key: Any = None) -> OpenResult:
        """Create a new peer and bind this session to it"""
        async with self._identity_lock:
            if self.state is not SessionState.UNAUTHENTICATED:
                raise PreconditionFailed()

            if not access_key_matches(self._api_key, key):
                log_security_event(
                    "access_key_rejected",
                    "Rejected open with invalid access key",
                    ip_address=self.ip_address,
                    level=logging.WARNING,
                )
                raise ConnectionTerminated("Invalid access key")

            peer_id = await run_in_threadpool(self.store.create_peer)
            token = issue_token(self._secret_key, peer_id)
            self._authenticate(peer_id)

        logger.info("Session opened", extra={"peer_id": peer_id})
        return OpenResult(id=peer_id, token=token)

    async def reconnect(self, peer_id: Any, token: Any) -> None:
        """Resume an existing peer identity with its reconnection token"""
        async with self._identity_lock:
            if self.state is not SessionState.UNAUTHENTICATED:
                raise PreconditionFailed()
            if not isinstance(peer_id, str):
                raise BadRequest()
            if not isinstance(token, str) or not verify_token(self._secret_key, peer_id, token):
                log_security_event(
                    "reconnect_rejected",
                    "Reconnection token failed verification",
                    peer_id=peer_id,
                    ip_address=self.ip_address,
                    level=logging.WARNING,
                )
                raise Unauthorized()
            if not await run_in_threadpool(self.store.peer_exists, peer_id):
                raise NotFound()
            self._authenticate(peer_id)

        logger.info("Session reconnected", extra={"peer_id": peer_id})

    async def destroy(self) -> None:
        """Delete this session's peer and every message referencing it"""
        async with self._identity_lock:
            peer_id = self._require_authenticated()
            await run_in_threadpool(self.store.delete_peer_and_messages, peer_id)
            self.peer_id = None
            self.state = SessionState.CLOSED

        logger.info("Session destroyed its peer", extra={"peer_id": peer_id})

    async def send(self, destination: Any, kind: Any, content: Any) -> None:
        """Queue a handshake message in another peer's mailbox"""
        source = self._require_authenticated()
        if not isinstance(destination, str) or not isinstance(content, str):
            raise BadRequest()
        if not isinstance(kind, str) or kind not in _MESSAGE_TYPES:
            raise BadRequest()
        if len(content) > MAX_CONTENT_LENGTH:
            raise ContentTooLarge()
        if destination == source:
            raise Forbidden()
        if not await run_in_threadpool(self.store.enqueue, source, destination, kind, content):
            raise NotFound()
        logger.debug(
            "Queued message",
            extra={"source": source, "destination": destination, "message_type": kind},
        )

    async def poll(self) -> List[MailboxMessage]:
        """Take every message waiting in this session's mailbox"""
        peer_id = self._require_authenticated()
        previous_poll = self._poll_limiter.last_poll_at
        if not self._poll_limiter.acquire(self._clock()):
            raise TooManyRequests()

        try:
            messages = await run_in_threadpool(self.store.drain_all, peer_id)
        except Exception:
            # Nothing was delivered, so the window stays where it was
            self._poll_limiter.release(previous_poll)
            raise
        if messages:
            logger.debug("Drained mailbox", extra={"peer_id": peer_id, "count": len(messages)})
        return messages
