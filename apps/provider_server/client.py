"""Minimal asyncio JSON-RPC client for talking to a running provider."""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
from typing import Any

from .errors import CanonicalError, RpcError, TransportError
from .protocol import Handshake
from .transport import MAX_FRAME_BYTES

__all__ = ["ProviderClient"]


class ProviderClient:
    """Issue concurrent calls over one connection, matching responses by id."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader = reader
        self._writer = writer
        self._ids = itertools.count(1)
        self._pending: dict[int, asyncio.Future[dict[str, Any]]] = {}
        self._write_lock = asyncio.Lock()
        self._closed_error: TransportError | None = None
        self._reader_task = asyncio.create_task(self._read_loop())

    @classmethod
    async def connect(cls, host: str, port: int) -> ProviderClient:
        reader, writer = await asyncio.open_connection(host, port, limit=MAX_FRAME_BYTES)
        return cls(reader, writer)

    @classmethod
    async def from_handshake(cls, handshake: Handshake) -> ProviderClient:
        return await cls.connect(handshake.host, handshake.port)

    async def __aenter__(self) -> ProviderClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def closed(self) -> bool:
        """True once the connection can no longer carry responses."""

        return self._closed_error is not None or self._reader_task.done()

    async def call(self, method: str, /, **params: Any) -> dict[str, Any]:
        """Invoke ``method`` and return its ``result`` object.

        JSON-RPC error responses raise :class:`RpcError` carrying the
        canonical code sent by the server.
        """

        self._raise_if_closed()
        request_id = next(self._ids)
        future: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        frame = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}
        try:
            await self._send(frame)
            response = await future
        finally:
            self._pending.pop(request_id, None)
        error = response.get("error")
        if error is not None:
            data = error.get("data") or {}
            code = data.get("canonical") or CanonicalError.from_jsonrpc_code(error.get("code", 0))
            raise RpcError(code, str(error.get("message", "")))
        return response.get("result") or {}

    async def notify(self, method: str, /, **params: Any) -> None:
        self._raise_if_closed()
        await self._send({"jsonrpc": "2.0", "method": method, "params": params})

    def _raise_if_closed(self) -> None:
        if self._closed_error is not None:
            raise TransportError(self._closed_error.message)
        if self._reader_task.done():
            raise TransportError("Connection closed by provider")

    async def _send(self, frame: dict[str, Any]) -> None:
        try:
            async with self._write_lock:
                self._writer.write((json.dumps(frame) + "\n").encode("utf-8"))
                await self._writer.drain()
        except ConnectionError as exc:
            raise TransportError(str(exc) or "Connection lost") from exc

    async def _read_loop(self) -> None:
        failure = TransportError("Connection closed by provider")
        try:
            while True:
                line = await self._reader.readline()
                if not line:
                    break
                message = json.loads(line)
                if not isinstance(message, dict):
                    continue
                future = self._pending.get(message.get("id"))
                if future is not None and not future.done():
                    future.set_result(message)
        except (ConnectionError, ValueError) as exc:
            failure = TransportError(str(exc))
        finally:
            self._closed_error = failure
            for future in self._pending.values():
                if not future.done():
                    future.set_exception(failure)

    async def close(self) -> None:
        self._writer.close()
        with contextlib.suppress(ConnectionError):
            await self._writer.wait_closed()
        self._reader_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._reader_task
