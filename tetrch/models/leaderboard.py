"""Paginated collections and the user leaderboard entry shapes.

Pages decode entry by entry: one malformed entry becomes an ``EntryFailure``
on the page instead of failing the whole response.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Annotated, Any, Callable, Generic, Mapping, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

from tetrch.api.errors import DecodeError
from tetrch.models.primitives import (
    Count,
    Flag,
    Integer,
    Number,
    OptionalInteger,
    OptionalNumber,
    UnknownCode,
    as_validator,
    expect_list,
    expect_object,
    join_path,
    open_code,
    validate_model,
)
from tetrch.models.rank import (
    DEFAULT_RANK_POLICY,
    LeagueSummary,
    OptionalTier,
    RankPolicy,
    RankStanding,
    classify_standing,
    decode_league_summary,
)

log = logging.getLogger(__name__)

T = TypeVar("T")

CURSOR_KEYS = ("pri", "sec", "ter")


class Role(str, Enum):
    USER = "user"
    ANON = "anon"
    BOT = "bot"
    SYSOP = "sysop"
    ADMIN = "admin"
    MOD = "mod"
    HALFMOD = "halfmod"
    BANNED = "banned"
    HIDDEN = "hidden"


@dataclass(frozen=True, slots=True)
class EntryFailure:
    index: int
    path: str
    reason: str


@dataclass(frozen=True, slots=True)
class LeaderboardPage(Generic[T]):
    entries: tuple[T, ...]
    failures: tuple[EntryFailure, ...] = ()
    next_cursor: str | None = None
    prev_cursor: str | None = None

    @property
    def is_partial(self) -> bool:
        return bool(self.failures)

    def __len__(self) -> int:
        return len(self.entries)


def render_cursor(raw: Any, path: str) -> str:
    """Render an entry's sort key (``p``) as the ``pri:sec:ter`` token the upstream accepts."""
    key = expect_object(raw, path)
    parts = []
    for name in CURSOR_KEYS:
        if name not in key:
            raise DecodeError(join_path(path, name), "missing sort key component")
        value = key[name]
        parts.append(value if isinstance(value, str) else json.dumps(value))
    return ":".join(parts)


def _edge_cursor(items: list[Any], reverse: bool) -> str | None:
    ordered = reversed(items) if reverse else items
    for item in ordered:
        if isinstance(item, Mapping) and item.get("p") is not None:
            try:
                return render_cursor(item["p"], "p")
            except DecodeError:
                continue
    return None


def decode_page(
    raw: Any,
    path: str,
    decode_entry: Callable[[Any, str], T],
    key: str = "entries",
) -> LeaderboardPage[T]:
    data = expect_object(raw, path)
    items_path = join_path(path, key)
    items = expect_list(data.get(key), items_path)

    entries: list[T] = []
    failures: list[EntryFailure] = []
    for index, item in enumerate(items):
        entry_path = join_path(items_path, index)
        try:
            entries.append(decode_entry(item, entry_path))
        except DecodeError as exc:
            log.warning("skipping malformed entry %s: %s", exc.path, exc.reason)
            failures.append(EntryFailure(index=index, path=exc.path, reason=exc.reason))

    return LeaderboardPage(
        entries=tuple(entries),
        failures=tuple(failures),
        next_cursor=_edge_cursor(items, reverse=True),
        prev_cursor=_edge_cursor(items, reverse=False),
    )


def xp_level(xp: float) -> int:
    return int((xp / 500) ** 0.6 + xp / (5000 + max(0.0, xp - 4_000_000) / 5000) + 1)


def optional_cursor(raw: Any, path: str) -> str | None:
    return None if raw is None else render_cursor(raw, path)


Cursor = Annotated[str | None, BeforeValidator(as_validator(optional_cursor))]
OpenRole = Annotated[Role | UnknownCode, BeforeValidator(partial(open_code, Role))]


class _LeaderboardUser(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(alias="_id")
    username: str
    role: OpenRole
    country: str | None = None
    supporter: Flag = False
    cursor: Cursor = Field(default=None, alias="p")

    @property
    def profile_url(self) -> str:
        return f"https://ch.tetr.io/u/{self.username}"


class LeagueLeaderboardEntry(_LeaderboardUser):
    league: LeagueSummary


class XpLeaderboardEntry(_LeaderboardUser):
    xp: Number
    games_played: OptionalInteger = Field(default=None, alias="gamesplayed")
    games_won: OptionalInteger = Field(default=None, alias="gameswon")
    game_time: OptionalNumber = Field(default=None, alias="gametime")

    @property
    def level(self) -> int:
        return xp_level(self.xp)


class AchievementLeaderboardEntry(_LeaderboardUser):
    achievement_rating: Integer = Field(alias="ar")
    achievement_counts: dict[str, Count] = Field(default_factory=dict, alias="ar_counts")

    @field_validator("achievement_counts", mode="before")
    @classmethod
    def _counts(cls, value: Any) -> Any:
        return {} if value is None else value


class HistoricalLeagueEntry(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(alias="_id")
    season: str
    username: str
    country: str | None = None
    placement: OptionalInteger = None
    standing: RankStanding
    games_played: Count = Field(default=0, alias="gamesplayed")
    games_won: Count = Field(default=0, alias="gameswon")
    glicko: OptionalNumber = None
    rd: OptionalNumber = None
    gxe: OptionalNumber = None
    best_tier: OptionalTier = Field(default=None, alias="bestrank")
    apm: OptionalNumber = None
    pps: OptionalNumber = None
    vs: OptionalNumber = None
    cursor: Cursor = Field(default=None, alias="p")


def decode_league_entry(
    raw: Any,
    path: str,
    policy: RankPolicy = DEFAULT_RANK_POLICY,
) -> LeagueLeaderboardEntry:
    data = expect_object(raw, path)
    league_path = join_path(path, "league")
    if "league" not in data:
        raise DecodeError(league_path, "missing league data")
    league = decode_league_summary(data["league"], league_path, policy)
    return validate_model(LeagueLeaderboardEntry, {**data, "league": league}, path)


def decode_xp_entry(raw: Any, path: str) -> XpLeaderboardEntry:
    return validate_model(XpLeaderboardEntry, raw, path)


def decode_achievement_entry(raw: Any, path: str) -> AchievementLeaderboardEntry:
    return validate_model(AchievementLeaderboardEntry, raw, path)


def decode_historical_entry(
    raw: Any,
    path: str,
    policy: RankPolicy = DEFAULT_RANK_POLICY,
) -> HistoricalLeagueEntry:
    data = expect_object(raw, path)
    standing = classify_standing(data, path, policy)
    return validate_model(HistoricalLeagueEntry, {**data, "standing": standing}, path)
