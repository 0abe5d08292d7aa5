"""Uniform success/error envelope wrapped around every upstream response."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from http import HTTPStatus
from typing import Any, Callable, Generic, TypeVar

from tetrch.api.errors import ApiError, DecodeError
from tetrch.models.primitives import (
    UnknownCode,
    expect_object,
    open_code,
    optional_string,
    timestamp,
)

log = logging.getLogger(__name__)

T = TypeVar("T")

PayloadDecoder = Callable[[Any, str], T]

STATUS_ERROR_CODES = {
    400: "bad_request",
    404: "not_found",
    429: "rate_limited",
}


class CacheStatus(str, Enum):
    HIT = "hit"
    MISS = "miss"
    AWAITED = "awaited"


@dataclass(frozen=True, slots=True)
class ErrorDetail:
    code: str
    message: str
    context: str | None = None


@dataclass(frozen=True, slots=True)
class Envelope(Generic[T]):
    success: bool
    payload: T
    cache_status: CacheStatus | UnknownCode | None = None
    cached_at: datetime | None = None
    cached_until: datetime | None = None


def status_error_code(status: int) -> str:
    if status in STATUS_ERROR_CODES:
        return STATUS_ERROR_CODES[status]
    if 500 <= status < 600:
        return "server_error"
    return f"http_{status}"


def status_message(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return f"HTTP {status}"


def parse_json(body: bytes) -> Any:
    try:
        return json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DecodeError("<root>", f"response body is not JSON: {exc}") from exc


def decode_error_detail(
    raw: Any,
    default_code: str,
    default_message: str,
    path: str = "error",
) -> ErrorDetail:
    """Decode the ``error`` member. Every part of it is optional upstream."""
    if raw is None:
        return ErrorDetail(code=default_code, message=default_message)
    # Older endpoints send the error as a bare string.
    if isinstance(raw, str):
        return ErrorDetail(code=default_code, message=raw)
    body = expect_object(raw, path)
    key = optional_string(body.get("key"), f"{path}.key")
    message = optional_string(body.get("msg"), f"{path}.msg") or key or default_message
    context = optional_string(body.get("context"), f"{path}.context")
    return ErrorDetail(code=key or default_code, message=message, context=context)


def _cache_fields(raw: Any) -> dict[str, Any]:
    if raw is None:
        return {}
    cache = expect_object(raw, "cache")
    return {
        "cache_status": open_code(CacheStatus, cache["status"]) if "status" in cache else None,
        "cached_at": timestamp(cache.get("cached_at"), "cache.cached_at"),
        "cached_until": timestamp(cache.get("cached_until"), "cache.cached_until"),
    }


def decode_envelope(status: int, body: bytes, decode_payload: PayloadDecoder[T]) -> Envelope[T]:
    """Decode one raw response into an ``Envelope`` or raise a ``ClientError``."""
    if not 200 <= status < 300:
        code = status_error_code(status)
        try:
            document = expect_object(parse_json(body), "<root>")
            detail = decode_error_detail(document.get("error"), code, status_message(status))
        except DecodeError as exc:
            raise DecodeError(exc.path, f"HTTP {status} with unrecognised error body: {exc.reason}") from exc
        log.debug("upstream returned HTTP %s: %s", status, detail.message)
        # The HTTP status is authoritative for non-2xx responses.
        raise ApiError(code=code, message=detail.message, status=status, context=detail.context)

    document = expect_object(parse_json(body), "<root>")
    success = document.get("success")
    if not isinstance(success, bool):
        raise DecodeError("success", f"expected a boolean, got {success!r}")
    if not success:
        detail = decode_error_detail(document.get("error"), "api_error", "request was not successful")
        log.debug("upstream reported failure %s: %s", detail.code, detail.message)
        raise ApiError(code=detail.code, message=detail.message, status=status, context=detail.context)

    if "data" not in document:
        raise DecodeError("data", "successful response carries no data")
    return Envelope(
        success=True,
        payload=decode_payload(document["data"], "data"),
        **_cache_fields(document.get("cache")),
    )
