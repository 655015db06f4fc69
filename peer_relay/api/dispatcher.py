"""
Method dispatch for signaling connections.

Decodes request frames, routes them to the connection's ``RelaySession`` and
writes correlated responses. Each request runs as its own task, so a slow
store call does not hold up later requests on the same connection.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from pydantic import ValidationError

from peer_relay.core.errors import BadRequest, ConnectionTerminated, InternalError, RelayError
from peer_relay.core.schemas.signaling import Method, RpcRequest, error_frame, success_frame
from peer_relay.services.session import RelaySession

logger = logging.getLogger(__name__)

SendFrame = Callable[[Dict[str, Any]], Awaitable[None]]
Terminate = Callable[[str], Awaitable[None]]
Handler = Callable[[RelaySession, Dict[str, Any]], Awaitable[Any]]


async def _open(session: RelaySession, params: Dict[str, Any]) -> Any:
    result = await session.open(params.get("key"))
    return result.model_dump()


async def _reconnect(session: RelaySession, params: Dict[str, Any]) -> Any:
    await session.reconnect(params.get("id"), params.get("token"))
    return None


async def _destroy(session: RelaySession, params: Dict[str, Any]) -> Any:
    await session.destroy()
    return None


async def _send(session: RelaySession, params: Dict[str, Any]) -> Any:
    await session.send(params.get("id"), params.get("type"), params.get("content"))
    return None


async def _poll(session: RelaySession, params: Dict[str, Any]) -> Any:
    messages = await session.poll()
    return [message.model_dump() for message in messages]


METHOD_HANDLERS: Dict[Method, Handler] = {
    Method.OPEN: _open,
    Method.RECONNECT: _reconnect,
    Method.DESTROY: _destroy,
    Method.SEND: _send,
    Method.POLL: _poll,
}


def decode_request(raw: str) -> RpcRequest:
    """Parse a text frame into a request envelope, raising BadRequest on bad shape"""
    try:
        return RpcRequest.model_validate_json(raw)
    except ValidationError as e:
        logger.debug("Rejected malformed frame", extra={"errors": e.error_count()})
        raise BadRequest() from e


def resolve_method(name: str) -> Method:
    try:
        return Method(name)
    except ValueError:
        raise BadRequest() from None


class Dispatcher:
    """Routes decoded requests of one connection to its session"""

    def __init__(self, session: RelaySession, send: SendFrame, terminate: Terminate):
        """Initialize the dispatcher

        Args:
            session: Session owned by the connection
            send: Coroutine writing one response frame to the connection
            terminate: Coroutine closing the whole connection with a reason
        """
        self.session = session
        self._send = send
        self._terminate = terminate
        self._pending: Set[asyncio.Task] = set()

    async def handle_frame(self, raw: str) -> None:
        """Decode one inbound frame and schedule its execution"""
        try:
            request = decode_request(raw)
        except BadRequest as e:
            await self._send(error_frame(e.to_wire()))
            return

        task = asyncio.create_task(self.execute(request))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def execute(self, request: RpcRequest) -> None:
        """Run one request and answer it if it carries a correlation id"""
        try:
            method = resolve_method(request.method)
            result = await METHOD_HANDLERS[method](self.session, request.params or {})
        except RelayError as e:
            logger.info(
                "Method failed",
                extra={"method": request.method, "status_code": e.status_code},
            )
            await self._reply(request.id, error=e)
        except ConnectionTerminated as e:
            await self._terminate(e.reason)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Unhandled error in method", extra={"method": request.method})
            await self._reply(request.id, error=InternalError())
        else:
            await self._reply(request.id, result=result)

    async def _reply(
        self,
        request_id: Optional[str],
        result: Any = None,
        error: Optional[RelayError] = None,
    ) -> None:
        if request_id is None:
            return
        if error is not None:
            await self._send(error_frame(error.to_wire(), request_id))
        else:
            await self._send(success_frame(request_id, result))

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def join(self) -> None:
        """Wait for every in-flight request to finish"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def cancel_pending(self) -> None:
        """Abort in-flight requests; their responses are never written"""
        current = asyncio.current_task()
        for task in list(self._pending):
            if task is not current:
                task.cancel()
