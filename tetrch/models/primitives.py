"""Adapters for the loosely-typed JSON shapes the upstream API returns.

Every adapter is total: it either returns a strict value or raises
``DecodeError`` naming the offending path. "Absent" (``None``) and
"malformed" are never conflated, except where a helper says so.

The annotated types at the bottom (``Number``, ``Integer``, ``Flag`` ...)
hand the same adapters to pydantic, so models get identical semantics.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Callable, Mapping, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, ValidationError

from tetrch.api.errors import DecodeError

E = TypeVar("E", bound=Enum)
M = TypeVar("M", bound=BaseModel)


class UnknownCode(BaseModel):
    """An enumerated code this client does not know yet."""

    model_config = ConfigDict(frozen=True)

    raw: str

    @property
    def value(self) -> str:
        return self.raw

    def __str__(self) -> str:
        return self.raw


def join_path(parent: str, key: str | int) -> str:
    if isinstance(key, int):
        return f"{parent}[{key}]"
    return f"{parent}.{key}" if parent else key


def expect_object(value: Any, path: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise DecodeError(path, f"expected an object, got {type(value).__name__}")
    return value


def expect_list(value: Any, path: str) -> list[Any]:
    if not isinstance(value, list):
        raise DecodeError(path, f"expected an array, got {type(value).__name__}")
    return value


def _is_number(value: Any) -> bool:
    # bool is an int subclass; upstream never means a number by it.
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def optional_number(value: Any, path: str) -> float | None:
    if value is None:
        return None
    if not _is_number(value):
        raise DecodeError(path, f"expected a number or null, got {value!r}")
    return float(value)


def optional_int(value: Any, path: str) -> int | None:
    if value is None:
        return None
    if not _is_number(value):
        raise DecodeError(path, f"expected an integer or null, got {value!r}")
    if isinstance(value, int):
        return value
    if not value.is_integer():
        raise DecodeError(path, f"expected an integer, got {value!r}")
    return int(value)


def count(value: Any, path: str) -> int:
    """A counter where null means zero."""
    return optional_int(value, path) or 0


def require_number(value: Any, path: str) -> float:
    number = optional_number(value, path)
    if number is None:
        raise DecodeError(path, "missing required number")
    return number


def optional_string(value: Any, path: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise DecodeError(path, f"expected a string or null, got {value!r}")
    return value


def require_string(value: Any, path: str) -> str:
    text = optional_string(value, path)
    if text is None:
        raise DecodeError(path, "missing required string")
    return text


def flag(value: Any, path: str) -> bool:
    """A boolean where null means false."""
    if value is None:
        return False
    if not isinstance(value, bool):
        raise DecodeError(path, f"expected a boolean, got {value!r}")
    return value


def timestamp(value: Any, path: str) -> datetime | None:
    """Epoch milliseconds or an ISO-8601 string to an aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise DecodeError(path, f"unparsable timestamp {value!r}") from None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        try:
            return parsed.astimezone(timezone.utc)
        except OverflowError:
            raise DecodeError(path, f"timestamp out of range {value!r}") from None
    if not _is_number(value):
        raise DecodeError(path, f"expected a timestamp, got {value!r}")
    if value < 0:
        raise DecodeError(path, f"negative timestamp {value!r}")
    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        raise DecodeError(path, f"timestamp out of range {value!r}") from None


def open_code(enum_cls: type[E], value: Any) -> E | UnknownCode:
    """Map a code onto ``enum_cls``, keeping unrecognised codes verbatim. Never fails."""
    if isinstance(value, (enum_cls, UnknownCode)):
        return value
    if not isinstance(value, str):
        return UnknownCode(raw=json.dumps(value))
    try:
        return enum_cls(value)
    except ValueError:
        return UnknownCode(raw=value)


def as_validator(adapter: Callable[[Any, str], Any]) -> Callable[[Any], Any]:
    """Run an adapter inside pydantic, which wants ``ValueError`` rather than ``DecodeError``."""

    def validate(value: Any) -> Any:
        try:
            return adapter(value, "")
        except DecodeError as exc:
            raise ValueError(exc.reason) from None

    return validate


def validate_model(model_cls: type[M], value: Any, path: str) -> M:
    """Validate ``value`` into a pydantic model, reporting the first failing field."""
    try:
        return model_cls.model_validate(value)
    except ValidationError as exc:
        error = exc.errors()[0]
        loc = path
        for part in error["loc"]:
            loc = join_path(loc, part)
        raise DecodeError(loc, error["msg"]) from exc


Number = Annotated[float, BeforeValidator(as_validator(optional_number))]
OptionalNumber = Annotated[float | None, BeforeValidator(as_validator(optional_number))]
Integer = Annotated[int, BeforeValidator(as_validator(optional_int))]
OptionalInteger = Annotated[int | None, BeforeValidator(as_validator(optional_int))]
Count = Annotated[int, BeforeValidator(as_validator(count))]
Flag = Annotated[bool, BeforeValidator(as_validator(flag))]
Timestamp = Annotated[datetime, BeforeValidator(as_validator(timestamp))]
OptionalTimestamp = Annotated[datetime | None, BeforeValidator(as_validator(timestamp))]
