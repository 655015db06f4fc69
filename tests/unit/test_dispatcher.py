"""
Unit tests for request decoding and method dispatch
"""

import asyncio
import json

import pytest

from peer_relay.api.dispatcher import Dispatcher, decode_request, resolve_method
from peer_relay.core.errors import BadRequest
from peer_relay.core.schemas.signaling import Method

pytestmark = pytest.mark.unit


class Recorder:
    """Collects frames and termination reasons written by a dispatcher"""

    def __init__(self):
        self.frames = []
        self.terminated = []

    async def send(self, frame):
        self.frames.append(frame)

    async def terminate(self, reason):
        self.terminated.append(reason)


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def dispatcher(make_session, recorder):
    return Dispatcher(make_session(), recorder.send, recorder.terminate)


async def _dispatch(dispatcher, frame):
    raw = frame if isinstance(frame, str) else json.dumps(frame)
    await dispatcher.handle_frame(raw)
    await dispatcher.join()


class TestDecodeRequest:
    def test_minimal_request(self):
        request = decode_request('{"method": "poll"}')

        assert request.method == "poll"
        assert request.params is None
        assert request.id is None

    def test_unknown_fields_are_ignored(self):
        request = decode_request('{"jsonrpc": "2.0", "method": "poll", "id": "7", "extra": 1}')

        assert request.id == "7"

    @pytest.mark.parametrize(
        "raw",
        ["not json", "[]", "{}", '{"method": 5}', '{"method": "send", "params": [1, 2]}'],
    )
    def test_malformed_frames_are_bad_requests(self, raw):
        with pytest.raises(BadRequest):
            decode_request(raw)

    def test_resolve_method(self):
        assert resolve_method("open") is Method.OPEN
        with pytest.raises(BadRequest):
            resolve_method("subscribe")


class TestDispatcher:
    async def test_successful_call_is_answered_with_its_id(self, dispatcher, recorder):
        await _dispatch(dispatcher, {"jsonrpc": "2.0", "method": "open", "id": "a1"})

        [frame] = recorder.frames
        assert frame["jsonrpc"] == "2.0"
        assert frame["id"] == "a1"
        assert set(frame["result"]) == {"id", "token"}

    async def test_unparseable_frame_gets_untagged_error(self, dispatcher, recorder):
        await _dispatch(dispatcher, "{broken")

        assert recorder.frames == [
            {"jsonrpc": "2.0", "error": {"message": "Bad Request", "code": 400}}
        ]

    async def test_unknown_method_is_bad_request(self, dispatcher, recorder):
        await _dispatch(dispatcher, {"method": "subscribe", "id": "x"})

        assert recorder.frames == [
            {"jsonrpc": "2.0", "error": {"message": "Bad Request", "code": 400}, "id": "x"}
        ]

    async def test_request_without_id_gets_no_response(self, dispatcher, recorder):
        await _dispatch(dispatcher, {"method": "open"})
        await _dispatch(dispatcher, {"method": "open"})

        assert recorder.frames == []
        assert dispatcher.session.peer_id is not None

    async def test_missing_params_default_to_empty(self, dispatcher, recorder):
        await _dispatch(dispatcher, {"method": "open", "id": "1"})
        await _dispatch(dispatcher, {"method": "send", "id": "2"})

        assert recorder.frames[1]["error"] == {"message": "Bad Request", "code": 400}

    async def test_method_error_is_tagged(self, dispatcher, recorder):
        await _dispatch(dispatcher, {"method": "poll", "id": "p"})

        assert recorder.frames == [
            {
                "jsonrpc": "2.0",
                "error": {"message": "Precondition Failed", "code": 412},
                "id": "p",
            }
        ]

    async def test_null_results_are_sent(self, make_session, recorder, store):
        receiver = await make_session().open()
        dispatcher = Dispatcher(make_session(), recorder.send, recorder.terminate)

        await _dispatch(dispatcher, {"method": "open", "id": "1"})
        await _dispatch(
            dispatcher,
            {"method": "send", "id": "2", "params": {"type": "offer", "id": receiver.id, "content": "s"}},
        )

        assert recorder.frames[1] == {"jsonrpc": "2.0", "result": None, "id": "2"}

    async def test_access_key_mismatch_terminates_connection(self, make_session, recorder):
        dispatcher = Dispatcher(
            make_session(api_key="let-me-in"), recorder.send, recorder.terminate
        )

        await _dispatch(dispatcher, {"method": "open", "id": "1", "params": {"key": "nope"}})

        assert recorder.frames == []
        assert recorder.terminated == ["Invalid access key"]

    async def test_unexpected_exception_becomes_internal_error(
        self, dispatcher, recorder, monkeypatch
    ):
        async def explode():
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(dispatcher.session, "poll", explode)

        await _dispatch(dispatcher, {"method": "poll", "id": "p"})

        assert recorder.frames == [
            {
                "jsonrpc": "2.0",
                "error": {"message": "Internal Server Error", "code": 500},
                "id": "p",
            }
        ]

    async def test_requests_run_concurrently(self, dispatcher, recorder, monkeypatch):
        release = asyncio.Event()

        async def slow_poll():
            await release.wait()
            return []

        monkeypatch.setattr(dispatcher.session, "poll", slow_poll)

        await dispatcher.handle_frame(json.dumps({"method": "poll", "id": "slow"}))
        await dispatcher.handle_frame(json.dumps({"method": "destroy", "id": "fast"}))
        await asyncio.sleep(0.01)

        assert [frame["id"] for frame in recorder.frames] == ["fast"]
        release.set()
        await dispatcher.join()
        assert [frame["id"] for frame in recorder.frames] == ["fast", "slow"]

    async def test_cancelled_requests_are_never_answered(self, dispatcher, recorder, monkeypatch):
        async def hang():
            await asyncio.Event().wait()

        monkeypatch.setattr(dispatcher.session, "poll", hang)

        await dispatcher.handle_frame(json.dumps({"method": "poll", "id": "p"}))
        await asyncio.sleep(0)
        assert dispatcher.pending == 1

        dispatcher.cancel_pending()
        await dispatcher.join()

        assert recorder.frames == []
        assert dispatcher.pending == 0
