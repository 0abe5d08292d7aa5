"""Client configuration, read from the environment where not given explicitly."""

from __future__ import annotations

import os
from dataclasses import dataclass

from tetrch.models.rank import DEFAULT_RANK_POLICY, RankPolicy

DEFAULT_BASE_URL = "https://ch.tetr.io/api/"
DEFAULT_TIMEOUT = 10.0
USER_AGENT = "tetrch/0.1.0"


@dataclass(frozen=True, slots=True)
class ClientConfig:
    base_url: str = DEFAULT_BASE_URL
    session_id: str | None = None
    timeout: float = DEFAULT_TIMEOUT
    rank_policy: RankPolicy = DEFAULT_RANK_POLICY


def get_base_url() -> str:
    return os.getenv("TETRCH_BASE_URL", DEFAULT_BASE_URL)


def get_session_id() -> str | None:
    return os.getenv("TETRCH_SESSION_ID") or None


def get_timeout() -> float:
    raw = os.getenv("TETRCH_TIMEOUT")
    if not raw:
        return DEFAULT_TIMEOUT
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"TETRCH_TIMEOUT must be a number of seconds, got {raw!r}") from None


def load_config(rank_policy: RankPolicy = DEFAULT_RANK_POLICY) -> ClientConfig:
    return ClientConfig(
        base_url=get_base_url(),
        session_id=get_session_id(),
        timeout=get_timeout(),
        rank_policy=rank_policy,
    )
