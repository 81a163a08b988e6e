"""Server runtime: bind, handshake, serve, drain, stop.

The phases run strictly in order. The handshake line is the only thing ever
written to standard output; a launcher reads it to learn the listen address.
On SIGTERM or SIGINT the listener stops accepting, in-flight calls get up to
``shutdown_timeout`` seconds to finish, and the provider's ``stop`` hook runs
exactly once whether or not the drain completed.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
import os
import signal
import socket
import sys
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, TextIO

import uvicorn
import yaml

from .dispatch import ProviderDispatcher
from .http import create_app
from .logging import get_logger, log_event
from .protocol import format_address, format_handshake
from .provider import ProviderService
from .transport import MAX_FRAME_BYTES, JsonRpcStreamServer

__all__ = [
    "DEFAULT_SHUTDOWN_TIMEOUT",
    "bind",
    "http_config",
    "ServeOptions",
    "serve",
    "serve_http",
    "serve_on",
    "serve_on_listener",
    "serve_on_with_options",
    "serve_with_options",
]

LOGGER = get_logger("runtime")

DEFAULT_SHUTDOWN_TIMEOUT = 30.0

_ENV_KEYS = {
    "host": "HEMMER_PROVIDER_HOST",
    "port": "HEMMER_PROVIDER_PORT",
    "shutdown_timeout": "HEMMER_PROVIDER_SHUTDOWN_TIMEOUT",
}


@dataclass(frozen=True, slots=True)
class ServeOptions:
    """Listen address and shutdown behaviour; ``port=0`` picks a free port."""

    shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT
    host: str = "127.0.0.1"
    port: int = 0

    def __post_init__(self) -> None:
        if self.shutdown_timeout <= 0:
            raise ValueError("shutdown_timeout must be a positive number of seconds")
        if not 0 <= self.port <= 65535:
            raise ValueError("port must be between 0 and 65535")
        if not self.host:
            raise ValueError("host must not be empty")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any], *, base: ServeOptions | None = None) -> ServeOptions:
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown serve option(s): {', '.join(unknown)}")
        coerced: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if key == "port":
                coerced[key] = int(value)
            elif key == "shutdown_timeout":
                coerced[key] = float(value)
            else:
                coerced[key] = str(value)
        return replace(base or cls(), **coerced)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, *, base: ServeOptions | None = None) -> ServeOptions:
        env = os.environ if environ is None else environ
        values = {key: env[name] for key, name in _ENV_KEYS.items() if env.get(name, "").strip()}
        return cls.from_mapping(values, base=base)

    @classmethod
    def from_file(cls, path: str | Path, *, base: ServeOptions | None = None) -> ServeOptions:
        with Path(path).open("r", encoding="utf-8") as handle:
            document = yaml.safe_load(handle) or {}
        if not isinstance(document, Mapping):
            raise ValueError(f"Serve options file {path} must contain a mapping")
        return cls.from_mapping(document, base=base)

    def merged(self, **overrides: Any) -> ServeOptions:
        return ServeOptions.from_mapping(overrides, base=self)


def _split_address(address: str | tuple[str, int]) -> tuple[str, int]:
    if isinstance(address, tuple):
        host, port = address
        return host, int(port)
    host, sep, port_text = address.rpartition(":")
    if not sep or not port_text.isdigit():
        raise ValueError(f"Invalid listen address: {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host or "127.0.0.1", int(port_text)


def bind(host: str, port: int) -> socket.socket:
    """Bind the listening socket; ``port=0`` lets the OS choose."""

    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    return socket.create_server((host, port), family=family)


def _emit_handshake(address: str, stream: TextIO | None) -> None:
    target = stream if stream is not None else sys.stdout
    target.write(format_handshake(address) + "\n")
    target.flush()


@contextlib.contextmanager
def _signal_handlers(stop: asyncio.Event) -> Iterator[None]:
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for signum in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(signum, stop.set)
        except (NotImplementedError, RuntimeError, ValueError):
            log_event("signal handler unavailable", level=logging.DEBUG, logger=LOGGER, signal=signum.name)
            continue
        installed.append(signum)
    try:
        yield
    finally:
        for signum in installed:
            loop.remove_signal_handler(signum)


async def _stop_provider(provider: ProviderService) -> None:
    try:
        await provider.stop()
    except Exception as exc:
        log_event("provider stop failed", level=logging.WARNING, logger=LOGGER, error=str(exc))


async def serve_on_listener(
    provider: ProviderService,
    sock: socket.socket,
    options: ServeOptions | None = None,
    *,
    handshake_stream: TextIO | None = None,
    shutdown_event: asyncio.Event | None = None,
) -> None:
    """Serve ``provider`` on an already bound socket until shutdown."""

    options = options or ServeOptions()
    rpc = JsonRpcStreamServer(ProviderDispatcher(provider))
    server = await asyncio.start_server(
        rpc.handle_connection, sock=sock, limit=MAX_FRAME_BYTES, start_serving=False
    )
    host, port = sock.getsockname()[:2]
    address = format_address(host, port)

    _emit_handshake(address, handshake_stream)
    await server.start_serving()
    log_event("provider server listening", logger=LOGGER, address=address)

    stop = shutdown_event or asyncio.Event()
    with _signal_handlers(stop):
        await stop.wait()

    log_event("shutdown requested", logger=LOGGER, inflight=rpc.inflight)
    server.close()
    rpc.begin_shutdown()
    if not await rpc.drain(options.shutdown_timeout):
        log_event(
            "shutdown timeout elapsed before in-flight requests finished",
            level=logging.WARNING,
            logger=LOGGER,
            timeout=options.shutdown_timeout,
            inflight=rpc.inflight,
        )
    await rpc.close_connections()
    await server.wait_closed()
    await _stop_provider(provider)
    log_event("provider server stopped", logger=LOGGER)


async def serve_on_with_options(
    provider: ProviderService,
    address: str | tuple[str, int],
    options: ServeOptions,
    *,
    handshake_stream: TextIO | None = None,
    shutdown_event: asyncio.Event | None = None,
) -> None:
    host, port = _split_address(address)
    await serve_on_listener(
        provider,
        bind(host, port),
        options,
        handshake_stream=handshake_stream,
        shutdown_event=shutdown_event,
    )


async def serve_on(provider: ProviderService, address: str | tuple[str, int], **kwargs: Any) -> None:
    await serve_on_with_options(provider, address, ServeOptions(), **kwargs)


async def serve_with_options(provider: ProviderService, options: ServeOptions, **kwargs: Any) -> None:
    await serve_on_with_options(provider, (options.host, options.port), options, **kwargs)


async def serve(provider: ProviderService, **kwargs: Any) -> None:
    """Serve on an ephemeral localhost port with default options."""

    await serve_with_options(provider, ServeOptions(), **kwargs)


def http_config(provider: ProviderService, options: ServeOptions, *, log_level: str = "warning") -> uvicorn.Config:
    # uvicorn takes whole seconds; round up so the drain is never shorter than asked.
    return uvicorn.Config(
        create_app(provider),
        log_level=log_level,
        access_log=False,
        timeout_graceful_shutdown=math.ceil(options.shutdown_timeout),
    )


async def serve_http(
    provider: ProviderService,
    options: ServeOptions | None = None,
    *,
    handshake_stream: TextIO | None = None,
    shutdown_event: asyncio.Event | None = None,
    log_level: str = "warning",
) -> None:
    """Serve the HTTP transport through uvicorn with the same handshake."""

    options = options or ServeOptions()
    sock = bind(options.host, options.port)
    host, port = sock.getsockname()[:2]
    address = format_address(host, port)
    server = uvicorn.Server(http_config(provider, options, log_level=log_level))

    async def exit_on_shutdown(event: asyncio.Event) -> None:
        await event.wait()
        while not server.started:
            await asyncio.sleep(0.01)
        server.should_exit = True

    watcher = asyncio.create_task(exit_on_shutdown(shutdown_event)) if shutdown_event is not None else None
    _emit_handshake(address, handshake_stream)
    log_event("provider http server listening", logger=LOGGER, address=address)
    try:
        await server.serve(sockets=[sock])
    finally:
        if watcher is not None:
            watcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watcher
