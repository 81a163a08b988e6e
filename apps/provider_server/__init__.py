"""Provider capability interface, RPC dispatch and server runtime."""

from .errors import (  # noqa: F401
    AlreadyExistsError,
    ConfigurationError,
    DeadlineExceededError,
    FailedPreconditionError,
    InvalidRequestError,
    NotFoundError,
    PermissionDeniedError,
    ProviderError,
    ResourceExhaustedError,
    RpcError,
    SdkError,
    SerializationError,
    TransportError,
    UnavailableError,
    UnimplementedError,
    UnknownResourceError,
    ValidationError,
)
from .protocol import (  # noqa: F401
    HANDSHAKE_PREFIX,
    MIN_PROTOCOL_VERSION,
    PROTOCOL_VERSION,
    ImportedResource,
    ProviderMetadata,
    ServerCapabilities,
    check_protocol_version,
)
from .provider import ProviderService  # noqa: F401
from .runtime import (  # noqa: F401
    ServeOptions,
    serve,
    serve_on,
    serve_on_with_options,
    serve_with_options,
)

__all__ = [
    "HANDSHAKE_PREFIX",
    "MIN_PROTOCOL_VERSION",
    "PROTOCOL_VERSION",
    "AlreadyExistsError",
    "ConfigurationError",
    "DeadlineExceededError",
    "FailedPreconditionError",
    "ImportedResource",
    "InvalidRequestError",
    "NotFoundError",
    "PermissionDeniedError",
    "ProviderError",
    "ProviderMetadata",
    "ProviderService",
    "ResourceExhaustedError",
    "RpcError",
    "SdkError",
    "SerializationError",
    "ServeOptions",
    "ServerCapabilities",
    "TransportError",
    "UnavailableError",
    "UnimplementedError",
    "UnknownResourceError",
    "ValidationError",
    "check_protocol_version",
    "serve",
    "serve_on",
    "serve_on_with_options",
    "serve_with_options",
]
