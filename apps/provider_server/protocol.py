"""Protocol constants, the startup handshake and metadata value types."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .errors import FailedPreconditionError, InvalidRequestError
from .logging import get_logger, log_event

__all__ = [
    "HANDSHAKE_PREFIX",
    "MIN_PROTOCOL_VERSION",
    "PROTOCOL_VERSION",
    "Handshake",
    "ImportedResource",
    "ProviderMetadata",
    "ServerCapabilities",
    "check_protocol_version",
    "format_address",
    "format_handshake",
    "parse_handshake",
]

PROTOCOL_VERSION = 1
MIN_PROTOCOL_VERSION = 1
HANDSHAKE_PREFIX = "HEMMER_PROVIDER"

LOGGER = get_logger("protocol")


def check_protocol_version(client_version: int) -> None:
    """Reject clients older than :data:`MIN_PROTOCOL_VERSION`.

    Newer clients are accepted; the mismatch is only logged.
    """

    if client_version < MIN_PROTOCOL_VERSION:
        raise FailedPreconditionError(
            f"Client protocol version {client_version} is too old. "
            f"Minimum supported version is {MIN_PROTOCOL_VERSION}"
        )
    if client_version > PROTOCOL_VERSION:
        log_event(
            "client protocol version is newer than server",
            level=logging.WARNING,
            logger=LOGGER,
            client_version=client_version,
            server_version=PROTOCOL_VERSION,
        )


def format_address(host: str, port: int) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def format_handshake(address: str) -> str:
    """Return the handshake line, without the trailing newline."""

    return f"{HANDSHAKE_PREFIX}|{PROTOCOL_VERSION}|{address}"


@dataclass(frozen=True, slots=True)
class Handshake:
    protocol_version: int
    host: str
    port: int

    @property
    def address(self) -> str:
        return format_address(self.host, self.port)


def parse_handshake(line: str) -> Handshake:
    parts = line.strip().split("|")
    if len(parts) != 3 or parts[0] != HANDSHAKE_PREFIX:
        raise InvalidRequestError(f"Malformed handshake line: {line.strip()!r}")
    version_text, address = parts[1], parts[2]
    if not version_text.isdigit():
        raise InvalidRequestError(f"Malformed handshake protocol version: {version_text!r}")
    host, sep, port_text = address.rpartition(":")
    if not sep or not host or not port_text.isdigit():
        raise InvalidRequestError(f"Malformed handshake address: {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return Handshake(protocol_version=int(version_text), host=host, port=int(port_text))


@dataclass(frozen=True, slots=True)
class ServerCapabilities:
    plan_destroy: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"plan_destroy": self.plan_destroy}


@dataclass(frozen=True, slots=True)
class ProviderMetadata:
    resources: tuple[str, ...] = ()
    data_sources: tuple[str, ...] = ()
    capabilities: ServerCapabilities = field(default_factory=ServerCapabilities)

    def __post_init__(self) -> None:
        object.__setattr__(self, "resources", tuple(self.resources))
        object.__setattr__(self, "data_sources", tuple(self.data_sources))


@dataclass(frozen=True, slots=True)
class ImportedResource:
    resource_type: str
    state: Any
