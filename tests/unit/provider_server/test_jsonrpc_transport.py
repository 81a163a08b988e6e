from __future__ import annotations

import asyncio
from typing import Any

import pytest

from apps.provider_server.dispatch import ProviderDispatcher
from apps.provider_server.transport import FRAME_SCHEMA, JsonRpcStreamServer
from tests.helpers.example_provider import ExampleProvider


class _ExplodingDispatcher(ProviderDispatcher):
    async def handle(self, method: str, params: Any = None) -> dict[str, Any]:
        raise RuntimeError("dispatcher bug")


@pytest.fixture
def server(dispatcher: ProviderDispatcher) -> JsonRpcStreamServer:
    return JsonRpcStreamServer(dispatcher)


def _handle(server: JsonRpcStreamServer, message: Any) -> dict[str, Any] | None:
    return asyncio.run(server.handle_request(message))


def test_frame_schema_requires_method() -> None:
    assert FRAME_SCHEMA["required"] == ["jsonrpc", "method"]


def test_successful_request_returns_result(server: JsonRpcStreamServer) -> None:
    response = _handle(server, {"jsonrpc": "2.0", "id": 7, "method": "GetMetadata", "params": {}})
    assert response is not None
    assert response["id"] == 7
    assert response["result"]["resources"] == ["example_server"]
    assert "error" not in response


def test_notification_has_no_response(server: JsonRpcStreamServer, provider: ExampleProvider) -> None:
    assert _handle(server, {"jsonrpc": "2.0", "method": "Stop"}) is None
    assert provider.stop_calls == 1


@pytest.mark.parametrize(
    "message",
    [
        {"jsonrpc": "1.0", "id": 1, "method": "GetSchema"},
        {"jsonrpc": "2.0", "id": 1},
        {"jsonrpc": "2.0", "id": 1, "method": ""},
        {"jsonrpc": "2.0", "id": 1, "method": "GetSchema", "params": [1, 2]},
        ["not", "an", "object"],
    ],
)
def test_invalid_frames_are_rejected(server: JsonRpcStreamServer, message: Any) -> None:
    response = _handle(server, message)
    assert response is not None
    assert response["error"]["code"] == -32600
    assert response["error"]["message"].startswith("Invalid request: ")


def test_invalid_frame_keeps_usable_id(server: JsonRpcStreamServer) -> None:
    response = _handle(server, {"jsonrpc": "2.0", "id": "abc"})
    assert response is not None and response["id"] == "abc"
    response = _handle(server, {"jsonrpc": "2.0", "id": True})
    assert response is not None and response["id"] is None


def test_unknown_method_maps_to_canonical_error(server: JsonRpcStreamServer) -> None:
    response = _handle(server, {"jsonrpc": "2.0", "id": 1, "method": "Nope"})
    assert response is not None
    error = response["error"]
    assert error["code"] == -32601
    assert error["message"] == "Method not found: Nope"
    assert error["data"]["canonical"] == "UNIMPLEMENTED"


def test_provider_failures_stay_in_result(server: JsonRpcStreamServer) -> None:
    response = _handle(
        server,
        {"jsonrpc": "2.0", "id": 2, "method": "Read", "params": {"resource_type": "example_server"}},
    )
    assert response is not None
    assert "error" not in response
    assert response["result"]["diagnostics"][0]["severity"] == "error"


def test_requests_after_shutdown_are_unavailable(server: JsonRpcStreamServer) -> None:
    server.begin_shutdown()
    response = _handle(server, {"jsonrpc": "2.0", "id": 3, "method": "GetMetadata"})
    assert response is not None
    assert response["error"]["data"]["canonical"] == "UNAVAILABLE"


def test_unexpected_dispatcher_error_is_internal(provider: ExampleProvider) -> None:
    server = JsonRpcStreamServer(_ExplodingDispatcher(provider))
    response = _handle(server, {"jsonrpc": "2.0", "id": 4, "method": "GetMetadata"})
    assert response is not None
    assert response["error"]["code"] == -32603
    assert response["error"]["message"] == "dispatcher bug"


def test_drain_without_inflight_returns_immediately(server: JsonRpcStreamServer) -> None:
    assert server.inflight == 0
    assert asyncio.run(server.drain(0.01)) is True
