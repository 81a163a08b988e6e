from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from pkgs.provider_schema import Diagnostic

__all__ = [
    "AlreadyExistsError",
    "CanonicalError",
    "ConfigurationError",
    "DeadlineExceededError",
    "FailedPreconditionError",
    "InvalidRequestError",
    "NotFoundError",
    "PermissionDeniedError",
    "ProviderError",
    "ResourceExhaustedError",
    "RpcError",
    "SdkError",
    "SerializationError",
    "TransportError",
    "UnavailableError",
    "UnimplementedError",
    "UnknownResourceError",
    "ValidationError",
    "to_diagnostics",
]


@dataclass(frozen=True)
class _CanonicalSpec:
    code: str
    description: str
    retryable: bool
    http_status: int
    jsonrpc_code: int
    message: str


@dataclass(frozen=True)
class _JsonRpcErrorTemplate:
    """Immutable template describing JSON-RPC error payload fields."""

    code: int
    message: str
    retryable: bool

    def build_payload(
        self, *, canonical_code: str, http_status: int, message: str | None = None
    ) -> dict[str, object]:
        return {
            "code": self.code,
            "message": message or self.message,
            "data": {
                "canonical": canonical_code,
                "httpStatus": http_status,
                "retryable": bool(self.retryable),
            },
        }


class CanonicalError:
    """RPC status codes shared by the JSON-RPC and HTTP transports."""

    NOT_FOUND = "NOT_FOUND"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    INTERNAL = "INTERNAL"
    FAILED_PRECONDITION = "FAILED_PRECONDITION"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    RESOURCE_EXHAUSTED = "RESOURCE_EXHAUSTED"
    UNAVAILABLE = "UNAVAILABLE"
    DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"
    UNIMPLEMENTED = "UNIMPLEMENTED"

    _SPECS: tuple[_CanonicalSpec, ...] = (
        _CanonicalSpec("NOT_FOUND", "Requested entity was not found", False, 404, -32004, "Not found"),
        _CanonicalSpec(
            "INVALID_ARGUMENT", "Request was malformed or failed validation", False, 400, -32602, "Invalid argument"
        ),
        _CanonicalSpec("INTERNAL", "Unexpected provider-side failure", False, 500, -32603, "Internal error"),
        _CanonicalSpec(
            "FAILED_PRECONDITION",
            "System is not in a state required for the operation",
            False,
            412,
            -32009,
            "Failed precondition",
        ),
        _CanonicalSpec("ALREADY_EXISTS", "Entity already exists", False, 409, -32010, "Already exists"),
        _CanonicalSpec(
            "PERMISSION_DENIED", "Caller lacks permission for the operation", False, 403, -32001, "Permission denied"
        ),
        _CanonicalSpec("RESOURCE_EXHAUSTED", "Quota or capacity exhausted", True, 429, -32029, "Resource exhausted"),
        _CanonicalSpec("UNAVAILABLE", "Service is temporarily unavailable", True, 503, -32013, "Unavailable"),
        _CanonicalSpec("DEADLINE_EXCEEDED", "Operation ran out of time", True, 504, -32003, "Deadline exceeded"),
        _CanonicalSpec("UNIMPLEMENTED", "Operation is not implemented", False, 501, -32601, "Method not found"),
    )

    _HTTP_STATUS_MAP: dict[str, int] = {spec.code: spec.http_status for spec in _SPECS}
    _JSONRPC_MAP: dict[str, _JsonRpcErrorTemplate] = {
        spec.code: _JsonRpcErrorTemplate(
            code=spec.jsonrpc_code,
            message=spec.message,
            retryable=spec.retryable,
        )
        for spec in _SPECS
    }

    @classmethod
    def codes(cls) -> Sequence[str]:
        return tuple(spec.code for spec in cls._SPECS)

    @staticmethod
    def _lookup(code: str, mapping: Mapping[str, object], *, context: str | None = None) -> object:
        if code not in mapping:
            raise KeyError(f"{code} does not have a mapping for {context or 'requested lookup'}")
        return mapping[code]

    @classmethod
    def to_http_status(cls, code: str) -> int:
        value = cls._lookup(code, cls._HTTP_STATUS_MAP, context="HTTP status")
        assert isinstance(value, int)
        return value

    @classmethod
    def to_jsonrpc_error(cls, code: str, message: str | None = None) -> dict[str, object]:
        template = cls._lookup(code, cls._JSONRPC_MAP, context="JSON-RPC error")
        assert isinstance(template, _JsonRpcErrorTemplate)
        return template.build_payload(
            canonical_code=code, http_status=cls.to_http_status(code), message=message
        )

    @classmethod
    def from_jsonrpc_code(cls, jsonrpc_code: int) -> str:
        for spec in cls._SPECS:
            if spec.jsonrpc_code == jsonrpc_code:
                return spec.code
        return cls.INTERNAL


class ProviderError(Exception):
    """Base class for failures raised by provider implementations.

    ``str(error)`` renders the kind prefix followed by the message; that text
    becomes the diagnostic summary sent to the caller.
    """

    prefix = "Provider error"
    status = CanonicalError.INTERNAL

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.prefix}: {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class NotFoundError(ProviderError):
    prefix = "Resource not found"
    status = CanonicalError.NOT_FOUND


class ValidationError(ProviderError):
    prefix = "Validation error"
    status = CanonicalError.INVALID_ARGUMENT


class UnknownResourceError(ProviderError):
    prefix = "Unknown resource type"
    status = CanonicalError.NOT_FOUND


class SdkError(ProviderError):
    prefix = "SDK error"
    status = CanonicalError.INTERNAL


class ConfigurationError(ProviderError):
    prefix = "Configuration error"
    status = CanonicalError.FAILED_PRECONDITION


class AlreadyExistsError(ProviderError):
    prefix = "Resource already exists"
    status = CanonicalError.ALREADY_EXISTS


class PermissionDeniedError(ProviderError):
    prefix = "Permission denied"
    status = CanonicalError.PERMISSION_DENIED


class ResourceExhaustedError(ProviderError):
    prefix = "Resource exhausted"
    status = CanonicalError.RESOURCE_EXHAUSTED


class UnavailableError(ProviderError):
    prefix = "Service unavailable"
    status = CanonicalError.UNAVAILABLE


class DeadlineExceededError(ProviderError):
    prefix = "Deadline exceeded"
    status = CanonicalError.DEADLINE_EXCEEDED


class FailedPreconditionError(ProviderError):
    prefix = "Failed precondition"
    status = CanonicalError.FAILED_PRECONDITION


class UnimplementedError(ProviderError):
    prefix = "Unimplemented"
    status = CanonicalError.UNIMPLEMENTED


class InvalidRequestError(ProviderError):
    prefix = "Invalid request"
    status = CanonicalError.INVALID_ARGUMENT


class SerializationError(ProviderError):
    prefix = "Serialization error"
    status = CanonicalError.INVALID_ARGUMENT


class TransportError(ProviderError):
    prefix = "Transport error"
    status = CanonicalError.UNAVAILABLE


class RpcError(Exception):
    """Frame-level failure surfaced by a transport rather than as a diagnostic."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    @classmethod
    def from_provider_error(cls, error: ProviderError) -> RpcError:
        return cls(error.status, str(error))

    def to_jsonrpc_error(self) -> dict[str, object]:
        return CanonicalError.to_jsonrpc_error(self.code, self.message)

    @property
    def http_status(self) -> int:
        return CanonicalError.to_http_status(self.code)


def to_diagnostics(error: BaseException) -> list[Diagnostic]:
    """Translate a failed provider call into the single diagnostic sent back."""

    return [Diagnostic.error(str(error) or type(error).__name__)]
