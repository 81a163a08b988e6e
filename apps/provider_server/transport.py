"""JSON-RPC 2.0 over newline-delimited TCP streams.

Each request line is dispatched as its own task so that slow provider calls
on one connection never block other requests. Responses are written back in
completion order under a per-connection lock; clients correlate them by
``id``.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Mapping
from typing import Any

from jsonschema import Draft202012Validator

from .dispatch import ProviderDispatcher
from .errors import CanonicalError, RpcError
from .logging import get_logger, log_event

__all__ = ["FRAME_SCHEMA", "MAX_FRAME_BYTES", "JsonRpcStreamServer"]

LOGGER = get_logger("transport")

MAX_FRAME_BYTES = 16 * 1024 * 1024

PARSE_ERROR = -32700
INVALID_REQUEST = -32600

FRAME_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["jsonrpc", "method"],
    "properties": {
        "jsonrpc": {"const": "2.0"},
        "method": {"type": "string", "minLength": 1},
        "params": {"type": ["object", "null"]},
        "id": {"type": ["string", "integer", "null"]},
    },
}

_FRAME_VALIDATOR = Draft202012Validator(FRAME_SCHEMA)


def _error_response(*, code: int, message: str, request_id: Any | None) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "error": {"code": code, "message": message},
        "id": request_id,
    }


def _encode(payload: Mapping[str, Any]) -> bytes:
    return (json.dumps(payload, separators=(",", ":")) + "\n").encode("utf-8")


class JsonRpcStreamServer:
    """Serve a :class:`ProviderDispatcher` to any number of stream connections."""

    def __init__(self, dispatcher: ProviderDispatcher) -> None:
        self._dispatcher = dispatcher
        self._inflight: set[asyncio.Task[None]] = set()
        self._writers: set[asyncio.StreamWriter] = set()
        self._closing = False

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def handle_request(self, message: Any) -> dict[str, Any] | None:
        """Return the response frame for ``message``, or ``None`` for a notification."""

        request_id = message.get("id") if isinstance(message, Mapping) else None
        errors = sorted(_FRAME_VALIDATOR.iter_errors(message), key=lambda error: list(error.path))
        if errors:
            if not isinstance(request_id, (str, int)) or isinstance(request_id, bool):
                request_id = None
            return _error_response(
                code=INVALID_REQUEST,
                message=f"Invalid request: {errors[0].message}",
                request_id=request_id,
            )

        is_notification = "id" not in message
        method = message["method"]
        try:
            if self._closing:
                raise RpcError(CanonicalError.UNAVAILABLE, "Server is shutting down")
            result = await self._dispatcher.handle(method, message.get("params"))
        except RpcError as exc:
            log_event(
                "rpc rejected",
                level=logging.WARNING,
                logger=LOGGER,
                method=method,
                code=exc.code,
                error=exc.message,
            )
            response = {"jsonrpc": "2.0", "error": exc.to_jsonrpc_error(), "id": request_id}
        except Exception as exc:
            LOGGER.exception("unhandled error while dispatching %s", method)
            response = {
                "jsonrpc": "2.0",
                "error": CanonicalError.to_jsonrpc_error(CanonicalError.INTERNAL, str(exc) or None),
                "id": request_id,
            }
        else:
            response = {"jsonrpc": "2.0", "result": result, "id": request_id}
        return None if is_notification else response

    async def handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Read request lines until EOF; suitable as an ``asyncio.start_server`` callback."""

        peer = writer.get_extra_info("peername")
        log_event("connection opened", level=logging.DEBUG, logger=LOGGER, peer=str(peer))
        self._writers.add(writer)
        lock = asyncio.Lock()
        try:
            while True:
                try:
                    line = await reader.readline()
                except ValueError:
                    await self._write(
                        writer,
                        lock,
                        _error_response(code=INVALID_REQUEST, message="Frame too large", request_id=None),
                    )
                    break
                except ConnectionError:
                    break
                if not line:
                    break
                payload = line.strip()
                if not payload:
                    continue
                try:
                    message = json.loads(payload)
                except json.JSONDecodeError:
                    await self._write(
                        writer,
                        lock,
                        _error_response(code=PARSE_ERROR, message="Invalid JSON", request_id=None),
                    )
                    continue
                task = asyncio.create_task(self._respond(message, writer, lock))
                self._inflight.add(task)
                task.add_done_callback(self._inflight.discard)
        finally:
            self._writers.discard(writer)
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()
            log_event("connection closed", level=logging.DEBUG, logger=LOGGER, peer=str(peer))

    async def _respond(self, message: Any, writer: asyncio.StreamWriter, lock: asyncio.Lock) -> None:
        response = await self.handle_request(message)
        if response is not None:
            await self._write(writer, lock, response)

    async def _write(self, writer: asyncio.StreamWriter, lock: asyncio.Lock, payload: Mapping[str, Any]) -> None:
        async with lock:
            if writer.is_closing():
                log_event("dropping response for closed connection", level=logging.DEBUG, logger=LOGGER)
                return
            try:
                writer.write(_encode(payload))
                await writer.drain()
            except ConnectionError as exc:
                log_event("client went away", level=logging.DEBUG, logger=LOGGER, error=str(exc))

    def begin_shutdown(self) -> None:
        """Reject requests that arrive from now on with an unavailable error."""

        self._closing = True

    async def drain(self, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for in-flight requests; ``True`` if all finished."""

        pending = set(self._inflight)
        if not pending:
            return True
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        return not still_running

    async def close_connections(self) -> None:
        writers = list(self._writers)
        for writer in writers:
            writer.close()
        for writer in writers:
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()
