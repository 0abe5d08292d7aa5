from __future__ import annotations

from typing import Any


class ClientError(Exception):
    def __init__(
        self,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)


class TransportError(ClientError):
    """The request never produced an HTTP response (DNS, TLS, connection, timeout)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(code="transport_error", message=message, details=details)


class DecodeError(ClientError):
    """A payload did not match any known or fallback shape."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(
            code="decode_error",
            message=f"{path}: {reason}",
            details={"path": path, "reason": reason},
        )


class ApiError(ClientError):
    """The upstream service reported a domain-level failure."""

    def __init__(
        self,
        code: str,
        message: str,
        status: int,
        context: str | None = None,
    ):
        self.status = status
        self.context = context
        details: dict[str, Any] = {"status": status}
        if context is not None:
            details["context"] = context
        super().__init__(code=code, message=message, details=details)


class InvalidRequestError(ClientError, ValueError):
    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(
            code="validation_error",
            message="Request validation failed",
            details={"errors": [{"loc": [field], "msg": message}]},
        )
