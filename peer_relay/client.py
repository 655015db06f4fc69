"""
Asyncio client for the signaling relay.

Mirrors the relay's method set: ``open``, ``reconnect``, ``destroy``,
``send`` and ``poll``. Every call carries a random correlation id and waits
for the response with the same id.

    async with RelayClient("wss://relay.example") as client:
        identity = await client.open()
        await client.send("offer", other_id, sdp)
        messages = await client.poll()
"""

import asyncio
import json
import logging
import secrets
from typing import Any, Dict, List, Optional

import websockets
from websockets.exceptions import ConnectionClosed

from peer_relay.core.schemas.signaling import JSONRPC_VERSION, Method

logger = logging.getLogger(__name__)


class RelayClientError(Exception):
    """Error response returned by the relay"""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class RelayClient:
    def __init__(self, url: str, *, timeout: Optional[float] = 30.0):
        self.url = url
        self.timeout = timeout
        self._ws: Any = None
        self._reader: Optional[asyncio.Task] = None
        self._calls: Dict[str, asyncio.Future] = {}

    async def connect(self) -> "RelayClient":
        self._ws = await websockets.connect(self.url)
        self._reader = asyncio.create_task(self._read_loop())
        return self

    async def close(self) -> None:
        if self._ws is not None:
            await self._ws.close()
        if self._reader is not None:
            await asyncio.gather(self._reader, return_exceptions=True)
            self._reader = None

    async def __aenter__(self) -> "RelayClient":
        return await self.connect()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _read_loop(self) -> None:
        try:
            async for raw in self._ws:
                if isinstance(raw, bytes):
                    continue
                self._handle_frame(raw)
        except ConnectionClosed as e:
            logger.info("Relay connection closed: %s", e)
        finally:
            for future in self._calls.values():
                if not future.done():
                    future.set_exception(ConnectionError("Relay connection closed"))
            self._calls.clear()

    def _handle_frame(self, raw: str) -> None:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.error("Invalid response from relay")
            return
        if not isinstance(data, dict) or data.get("jsonrpc") != JSONRPC_VERSION:
            logger.error("Invalid response from relay")
            return

        error = data.get("error")
        call_id = data.get("id")
        if call_id is None:
            if error:
                logger.error("Relay error: %s", error.get("message"))
            return

        future = self._calls.pop(call_id, None)
        if future is None or future.done():
            return
        if error:
            future.set_exception(RelayClientError(error.get("message", ""), error.get("code")))
        else:
            future.set_result(data.get("result"))

    async def call(self, method: Method, params: Optional[Dict[str, Any]] = None) -> Any:
        """Invoke a relay method and wait for its correlated response"""
        if self._ws is None:
            raise ConnectionError("Client is not connected")

        call_id = secrets.token_hex(8)
        future = asyncio.get_running_loop().create_future()
        self._calls[call_id] = future

        frame: Dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "id": call_id, "method": method.value}
        if params is not None:
            frame["params"] = params
        try:
            await self._ws.send(json.dumps(frame))
            return await asyncio.wait_for(future, self.timeout)
        finally:
            self._calls.pop(call_id, None)

    async def open(self, key: Optional[str] = None) -> Dict[str, str]:
        return await self.call(Method.OPEN, {"key": key} if key is not None else {})

    async def reconnect(self, peer_id: str, token: str) -> None:
        await self.call(Method.RECONNECT, {"id": peer_id, "token": token})

    async def destroy(self) -> None:
        await self.call(Method.DESTROY)

    async def send(self, type: str, peer_id: str, content: str) -> None:
        await self.call(Method.SEND, {"type": type, "id": peer_id, "content": content})

    async def poll(self) -> List[Dict[str, str]]:
        return await self.call(Method.POLL)
