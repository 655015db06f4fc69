"""
Test helper functions for common testing operations

These helpers provide utilities for driving signaling connections and
controlling time in tests.
"""

from typing import Any, Dict, Optional

TEST_SECRET_KEY = "test-secret-key-for-testing-only"


class FakeClock:
    """Millisecond clock that only moves when told to"""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def rpc(ws, method: str, params: Optional[Dict[str, Any]] = None, request_id: str = "1") -> Dict[str, Any]:
    """Send one request over a test WebSocket and return its response frame"""
    frame: Dict[str, Any] = {"jsonrpc": "2.0", "method": method, "id": request_id}
    if params is not None:
        frame["params"] = params
    ws.send_json(frame)
    response = ws.receive_json()
    assert response.get("id") == request_id, f"Unexpected response: {response}"
    return response


def open_peer(ws, request_id: str = "open") -> Dict[str, str]:
    """Open a new peer on a test WebSocket and return its identity"""
    response = rpc(ws, "open", request_id=request_id)
    assert "error" not in response, f"open failed: {response}"
    return response["result"]


def assert_error(response: Dict[str, Any], code: int, message: str) -> None:
    """Assert that a response frame is an error of the given kind"""
    assert "result" not in response, f"Expected error, got: {response}"
    assert response["error"] == {"message": message, "code": code}
