"""Pydantic models for the fixed-shape upstream payloads.

These cover profiles, badges, server statistics, searches and news. Fields
the upstream omits or nulls inconsistently are optional here; enumerated
codes fall back to ``UnknownCode`` instead of failing.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tetrch.api.errors import DecodeError
from tetrch.models.leaderboard import OpenRole, xp_level
from tetrch.models.primitives import (
    Flag,
    OptionalInteger,
    OptionalNumber,
    OptionalTimestamp,
    UnknownCode,
    as_validator,
    expect_object,
    join_path,
    open_code,
    optional_int,
    require_string,
    timestamp,
    validate_model,
)
from tetrch.models.rank import Tier
from tetrch.models.records import GameMode, GameRecord, decode_game_record

ASSET_URL = "https://tetr.io"


_timestamp = as_validator(timestamp)


class Badge(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    label: str
    group: str | None = None
    description: str | None = Field(default=None, alias="desc")
    awarded_at: datetime | None = Field(default=None, alias="ts")

    @field_validator("awarded_at", mode="before")
    @classmethod
    def _awarded_at(cls, value: Any) -> datetime | None:
        # Badges older than upstream timestamps carry ``ts: false``.
        if value is False:
            return None
        return _timestamp(value)

    @property
    def icon_url(self) -> str:
        return f"{ASSET_URL}/res/badges/{self.id}.png"


class Connection(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    display_username: str | None = None


class Connections(BaseModel):
    model_config = ConfigDict(frozen=True)

    discord: Connection | None = None
    twitch: Connection | None = None
    twitter: Connection | None = None
    reddit: Connection | None = None
    youtube: Connection | None = None
    steam: Connection | None = None


class Distinguishment(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: str
    detail: str | None = None
    header: str | None = None
    footer: str | None = None


class User(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(alias="_id")
    username: str
    role: OpenRole
    created_at: OptionalTimestamp = Field(default=None, alias="ts")
    bot_master: str | None = Field(default=None, alias="botmaster")
    badges: tuple[Badge, ...] = ()
    xp: float = 0
    games_played: OptionalInteger = Field(default=None, alias="gamesplayed")
    games_won: OptionalInteger = Field(default=None, alias="gameswon")
    game_time: OptionalNumber = Field(default=None, alias="gametime")
    country: str | None = None
    bad_standing: Flag = Field(default=False, alias="badstanding")
    supporter: Flag = False
    supporter_tier: int = 0
    avatar_revision: int | None = None
    banner_revision: int | None = None
    bio: str | None = None
    connections: Connections = Connections()
    friend_count: int | None = None
    distinguishment: Distinguishment | None = None
    achievements: tuple[int, ...] = ()
    achievement_rating: int | None = Field(default=None, alias="ar")
    achievement_counts: dict[str, int] = Field(default_factory=dict, alias="ar_counts")

    @field_validator("connections", mode="before")
    @classmethod
    def _connections(cls, value: Any) -> Any:
        # Users without connections get ``[]`` from some endpoints.
        return {} if value in (None, []) else value

    @property
    def level(self) -> int:
        return xp_level(self.xp)

    @property
    def profile_url(self) -> str:
        return f"https://ch.tetr.io/u/{self.username}"

    @property
    def avatar_url(self) -> str:
        if not self.avatar_revision:
            return f"{ASSET_URL}/res/avatar.png"
        return f"{ASSET_URL}/user-content/avatars/{self.id}.jpg?rv={self.avatar_revision}"

    @property
    def banner_url(self) -> str | None:
        if not self.banner_revision:
            return None
        return f"{ASSET_URL}/user-content/banners/{self.id}.jpg?rv={self.banner_revision}"

    @property
    def flag_url(self) -> str | None:
        if self.country is None:
            return None
        return f"{ASSET_URL}/res/flags/{self.country.lower()}.png"


class SearchedUser(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(alias="_id")
    username: str


class ServerStats(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user_count: int = Field(alias="usercount")
    user_count_delta: float | None = Field(default=None, alias="usercount_delta")
    anon_count: int = Field(alias="anoncount")
    total_accounts: int | None = Field(default=None, alias="totalaccounts")
    ranked_count: int = Field(alias="rankedcount")
    record_count: int | None = Field(default=None, alias="recordcount")
    games_played: int = Field(alias="gamesplayed")
    games_played_delta: float | None = Field(default=None, alias="gamesplayed_delta")
    games_finished: int = Field(alias="gamesfinished")
    game_time: float = Field(alias="gametime")
    inputs: int
    pieces_placed: int = Field(alias="piecesplaced")

    @property
    def registered_players(self) -> int:
        return self.user_count - self.anon_count

    def avg_pieces_per_second(self) -> float | None:
        return self.pieces_placed / self.game_time if self.game_time else None

    def avg_keys_per_second(self) -> float | None:
        return self.inputs / self.game_time if self.game_time else None


class ServerActivity(BaseModel):
    model_config = ConfigDict(frozen=True)

    activity: tuple[int, ...]

    @property
    def peak(self) -> int | None:
        return max(self.activity, default=None)


class NewsType(str, Enum):
    LEADERBOARD = "leaderboard"
    PERSONAL_BEST = "personalbest"
    BADGE = "badge"
    RANK_UP = "rankup"
    SUPPORTER = "supporter"
    SUPPORTER_GIFT = "supporter_gift"


class _GameNews(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    username: str
    gametype: GameMode | UnknownCode
    result: float
    replay_id: str | None = Field(default=None, alias="replayid")

    @field_validator("gametype", mode="before")
    @classmethod
    def _gametype(cls, value: Any) -> GameMode | UnknownCode:
        return open_code(GameMode, value)


class LeaderboardNews(_GameNews):
    kind: Literal["leaderboard"] = "leaderboard"
    rank: int


class PersonalBestNews(_GameNews):
    kind: Literal["personalbest"] = "personalbest"


class BadgeNews(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: Literal["badge"] = "badge"
    username: str
    badge_id: str = Field(alias="type")
    label: str


class RankUpNews(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["rankup"] = "rankup"
    username: str
    tier: Tier | UnknownCode = Field(alias="rank")

    @field_validator("tier", mode="before")
    @classmethod
    def _tier(cls, value: Any) -> Tier | UnknownCode:
        return open_code(Tier, value)


class SupporterNews(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["supporter"] = "supporter"
    username: str


class SupporterGiftNews(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["supporter_gift"] = "supporter_gift"
    username: str


class UnknownNews(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["unknown"] = "unknown"
    raw: dict[str, Any]


NewsData = Annotated[
    Union[
        LeaderboardNews,
        PersonalBestNews,
        BadgeNews,
        RankUpNews,
        SupporterNews,
        SupporterGiftNews,
        UnknownNews,
    ],
    Field(discriminator="kind"),
]

_NEWS_MODELS: dict[NewsType, type[BaseModel]] = {
    NewsType.LEADERBOARD: LeaderboardNews,
    NewsType.PERSONAL_BEST: PersonalBestNews,
    NewsType.BADGE: BadgeNews,
    NewsType.RANK_UP: RankUpNews,
    NewsType.SUPPORTER: SupporterNews,
    NewsType.SUPPORTER_GIFT: SupporterGiftNews,
}


class NewsItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    stream: str
    type: NewsType | UnknownCode
    data: NewsData
    created_at: datetime

    @property
    def is_global(self) -> bool:
        return self.stream == "global"


class RecordSummary(BaseModel):
    """A user's best record in one mode and where it places."""

    model_config = ConfigDict(frozen=True)

    record: GameRecord | None = None
    rank: int | None = None
    rank_local: int | None = None
    best: RecordSummary | None = None


def _unwrap_user(raw: Any, path: str) -> tuple[Mapping[str, Any], str]:
    data = expect_object(raw, path)
    # Older payloads nest the profile under ``user``.
    if "_id" not in data and isinstance(data.get("user"), Mapping):
        return data["user"], join_path(path, "user")
    return data, path


def decode_user(raw: Any, path: str = "data") -> User:
    data, path = _unwrap_user(raw, path)
    return validate_model(User, data, path)


def decode_searched_user(raw: Any, path: str = "data") -> SearchedUser | None:
    if raw is None:
        return None
    data = expect_object(raw, path)
    if "user" in data:
        if data["user"] is None:
            return None
        return validate_model(SearchedUser, data["user"], join_path(path, "user"))
    return validate_model(SearchedUser, data, path)


def decode_server_stats(raw: Any, path: str = "data") -> ServerStats:
    return validate_model(ServerStats, raw, path)


def decode_server_activity(raw: Any, path: str = "data") -> ServerActivity:
    # The legacy endpoint returned the bare array.
    if isinstance(raw, list):
        raw = {"activity": raw}
    return validate_model(ServerActivity, raw, path)


def decode_news_item(raw: Any, path: str) -> NewsItem:
    item = expect_object(raw, path)
    news_type = open_code(NewsType, item.get("type"))
    data_path = join_path(path, "data")
    payload = expect_object(item.get("data"), data_path)
    if isinstance(news_type, UnknownCode):
        data: BaseModel = UnknownNews(raw=dict(payload))
    else:
        data = validate_model(_NEWS_MODELS[news_type], payload, data_path)

    created_at = timestamp(item.get("ts"), join_path(path, "ts"))
    if created_at is None:
        raise DecodeError(join_path(path, "ts"), "missing required timestamp")
    return NewsItem(
        id=require_string(item.get("_id"), join_path(path, "_id")),
        stream=require_string(item.get("stream"), join_path(path, "stream")),
        type=news_type,
        data=data,
        created_at=created_at,
    )


def _summary_rank(value: Any, path: str) -> int | None:
    rank = optional_int(value, path)
    # -1 means the record is not on the leaderboard.
    return None if rank is None or rank < 0 else rank


def decode_record_summary(raw: Any, path: str = "data") -> RecordSummary:
    data = expect_object(raw, path)
    record = data.get("record")
    best = data.get("best")
    return RecordSummary(
        record=None if record is None else decode_game_record(record, join_path(path, "record")),
        rank=_summary_rank(data.get("rank"), join_path(path, "rank")),
        rank_local=_summary_rank(data.get("rank_local"), join_path(path, "rank_local")),
        best=None if best is None else decode_record_summary(best, join_path(path, "best")),
    )
