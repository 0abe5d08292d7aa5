"""Request construction and parameter validation for every upstream endpoint.

Builders return an ``ApiRequest`` or raise ``InvalidRequestError`` before
anything reaches the transport.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    ValidationError,
    field_validator,
    model_validator,
)

from tetrch.api.errors import InvalidRequestError
from tetrch.models.records import GameMode

USER_PATTERN = r"^(?:[a-z0-9_-]{3,16}|[0-9a-f]{24})$"
USER_ID_PATTERN = r"^[0-9a-f]{24}$"
COUNTRY_PATTERN = r"^[A-Z]{2}$"
SEASON_PATTERN = r"^[A-Za-z0-9_.-]{1,32}$"
REVOLUTION_PATTERN = r"^@[A-Za-z0-9_-]{1,32}$"
CONNECTION_ID_PATTERN = r"^[A-Za-z0-9_.-]{1,64}$"
ACHIEVEMENT_ID_PATTERN = r"^[0-9]{1,9}$"

MAX_LIMIT = 100

UserId = Annotated[str, StringConstraints(pattern=USER_ID_PATTERN)]
Country = Annotated[str, StringConstraints(pattern=COUNTRY_PATTERN)]


def _loc(error: dict[str, Any]) -> str:
    return ".".join(str(part) for part in error["loc"]) or "request"


class _Params(BaseModel):
    """Base for parameter objects; validation failures raise ``InvalidRequestError``."""

    model_config = ConfigDict(frozen=True)

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            error = exc.errors()[0]
            raise InvalidRequestError(_loc(error), error["msg"]) from None


class SortBy(str, Enum):
    LEAGUE = "league"
    XP = "xp"
    AR = "ar"
    TOP = "top"
    RECENT = "recent"
    PROGRESSION = "progression"


USER_LEADERBOARD_SORTS = frozenset({SortBy.LEAGUE, SortBy.XP, SortBy.AR})
RECORD_SORTS = frozenset({SortBy.TOP, SortBy.RECENT, SortBy.PROGRESSION})


class Scope(str, Enum):
    GLOBAL = "global"
    COUNTRY = "country"


class SocialService(str, Enum):
    DISCORD = "discord"
    TWITCH = "twitch"
    TWITTER = "twitter"
    REDDIT = "reddit"
    YOUTUBE = "youtube"
    STEAM = "steam"


class SearchCriteria(_Params):
    """Pagination and filtering for leaderboard-style collections.

    ``after``/``before`` take the opaque cursors a ``LeaderboardPage`` hands
    out and are sent verbatim.
    """

    limit: int | None = Field(default=None, ge=1, le=MAX_LIMIT)
    after: str | None = Field(default=None, min_length=1)
    before: str | None = Field(default=None, min_length=1)
    country: Country | None = None

    @field_validator("country", mode="before")
    @classmethod
    def _upper_country(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _one_bound(self) -> SearchCriteria:
        if self.after is not None and self.before is not None:
            raise ValueError("after and before are mutually exclusive")
        return self

    def query(self) -> tuple[tuple[str, str], ...]:
        params: list[tuple[str, str]] = []
        if self.after is not None:
            params.append(("after", self.after))
        if self.before is not None:
            params.append(("before", self.before))
        if self.limit is not None:
            params.append(("limit", str(self.limit)))
        if self.country is not None:
            params.append(("country", self.country))
        return tuple(params)


class RecordsLeaderboardId(_Params):
    """Identifies a records leaderboard, e.g. ``40l_global`` or ``zenith_country_JP@2024w31``."""

    gamemode: GameMode
    scope: Scope = Scope.GLOBAL
    country: Country | None = None
    revolution: Annotated[str, StringConstraints(pattern=REVOLUTION_PATTERN)] | None = None

    @field_validator("country", mode="before")
    @classmethod
    def _upper_country(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _country_scope(self) -> RecordsLeaderboardId:
        if self.scope is Scope.COUNTRY and self.country is None:
            raise ValueError("country scope needs a country code")
        if self.scope is Scope.GLOBAL and self.country is not None:
            raise ValueError("country given for the global scope")
        return self

    @property
    def param(self) -> str:
        scope = "global" if self.scope is Scope.GLOBAL else f"country_{self.country}"
        return f"{self.gamemode.value}_{scope}{self.revolution or ''}"


class NewsStream(_Params):
    """The global stream, or one user's personal stream when ``user_id`` is set."""

    user_id: UserId | None = None

    @property
    def param(self) -> str:
        return "global" if self.user_id is None else f"user_{self.user_id}"


class SocialConnection(_Params):
    service: SocialService
    id: Annotated[str, StringConstraints(pattern=CONNECTION_ID_PATTERN)]

    @classmethod
    def discord(cls, discord_id: str | int) -> SocialConnection:
        return cls(service=SocialService.DISCORD, id=str(discord_id))

    @property
    def param(self) -> str:
        return f"{self.service.value}:{self.id}"


@dataclass(frozen=True, slots=True)
class ApiRequest:
    path: str
    query: tuple[tuple[str, str], ...] = ()
    method: Literal["GET"] = "GET"


class _UserParam(_Params):
    user: Annotated[str, StringConstraints(pattern=USER_PATTERN)]

    @field_validator("user", mode="before")
    @classmethod
    def _lower(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class _SeasonParam(_Params):
    season: Annotated[str, StringConstraints(pattern=SEASON_PATTERN)]


class _LimitParam(_Params):
    limit: int | None = Field(default=None, ge=1, le=MAX_LIMIT)


class _AchievementParam(_Params):
    achievement_id: Annotated[str, StringConstraints(pattern=ACHIEVEMENT_ID_PATTERN)]


def _user(user: str) -> str:
    return _UserParam(user=user).user


def _criteria(criteria: SearchCriteria | None, allow_country: bool) -> SearchCriteria:
    criteria = criteria or SearchCriteria()
    if criteria.country is not None and not allow_country:
        raise InvalidRequestError("country", "country filtering is not supported for this collection")
    return criteria


def _mode(mode: GameMode | str) -> GameMode:
    try:
        return GameMode(mode)
    except ValueError:
        raise InvalidRequestError("mode", f"unsupported game mode {mode!r}") from None


def _sort(sort: SortBy | str) -> SortBy:
    try:
        return SortBy(sort)
    except ValueError:
        raise InvalidRequestError("sort", f"unknown sort {sort!r}") from None


def user_profile_request(user: str) -> ApiRequest:
    return ApiRequest(path=f"users/{_user(user)}")


def user_league_request(user: str) -> ApiRequest:
    return ApiRequest(path=f"users/{_user(user)}/summaries/league")


def user_summary_request(user: str, mode: GameMode | str) -> ApiRequest:
    mode = _mode(mode)
    if mode is GameMode.LEAGUE:
        raise InvalidRequestError("mode", "the league summary has its own request")
    return ApiRequest(path=f"users/{_user(user)}/summaries/{mode.value}")


def user_zen_request(user: str) -> ApiRequest:
    return ApiRequest(path=f"users/{_user(user)}/summaries/zen")


def user_achievements_request(user: str) -> ApiRequest:
    return ApiRequest(path=f"users/{_user(user)}/summaries/achievements")


def user_all_summaries_request(user: str) -> ApiRequest:
    return ApiRequest(path=f"users/{_user(user)}/summaries")


def user_records_request(
    user: str,
    mode: GameMode | str,
    sort: SortBy | str = SortBy.TOP,
    criteria: SearchCriteria | None = None,
) -> ApiRequest:
    mode, sort = _mode(mode), _sort(sort)
    if sort not in RECORD_SORTS:
        raise InvalidRequestError("sort", f"{sort.value} is not a record leaderboard")
    if mode is GameMode.LEAGUE and sort is SortBy.PROGRESSION:
        raise InvalidRequestError("sort", "league records have no progression leaderboard")
    criteria = _criteria(criteria, allow_country=False)
    return ApiRequest(
        path=f"users/{_user(user)}/records/{mode.value}/{sort.value}",
        query=criteria.query(),
    )


def user_leaderboard_request(
    sort: SortBy | str,
    criteria: SearchCriteria | None = None,
) -> ApiRequest:
    sort = _sort(sort)
    if sort not in USER_LEADERBOARD_SORTS:
        raise InvalidRequestError("sort", f"{sort.value} is not a user leaderboard")
    criteria = _criteria(criteria, allow_country=True)
    return ApiRequest(path=f"users/by/{sort.value}", query=criteria.query())


def historical_league_request(season: str, criteria: SearchCriteria | None = None) -> ApiRequest:
    season = _SeasonParam(season=season).season
    criteria = _criteria(criteria, allow_country=True)
    return ApiRequest(path=f"users/history/league/{season}", query=criteria.query())


def records_leaderboard_request(
    leaderboard_id: RecordsLeaderboardId,
    criteria: SearchCriteria | None = None,
) -> ApiRequest:
    # The scope lives in the leaderboard id, not in the query.
    criteria = _criteria(criteria, allow_country=False)
    return ApiRequest(path=f"records/{leaderboard_id.param}", query=criteria.query())


def search_record_request(user_id: str, mode: GameMode | str, played_at: datetime | int) -> ApiRequest:
    user_id = _user(user_id)
    if len(user_id) != 24:
        raise InvalidRequestError("user_id", "record search needs a user id, not a username")
    if isinstance(played_at, datetime):
        # Naive datetimes are UTC, like every timestamp the upstream sends.
        if played_at.tzinfo is None:
            played_at = played_at.replace(tzinfo=timezone.utc)
        millis = int(played_at.timestamp() * 1000)
    elif isinstance(played_at, int) and not isinstance(played_at, bool):
        millis = played_at
    else:
        raise InvalidRequestError("timestamp", "expected a datetime or epoch milliseconds")
    if millis < 0:
        raise InvalidRequestError("timestamp", "timestamp must not be negative")
    return ApiRequest(
        path="records/reverse",
        query=(("user", user_id), ("gamemode", _mode(mode).value), ("ts", str(millis))),
    )


def search_user_request(connection: SocialConnection) -> ApiRequest:
    return ApiRequest(path=f"users/search/{connection.param}")


def news_request(stream: NewsStream | None = None, limit: int | None = None) -> ApiRequest:
    limit = _LimitParam(limit=limit).limit
    path = "news/" if stream is None else f"news/{stream.param}"
    return ApiRequest(path=path, query=() if limit is None else (("limit", str(limit)),))


def server_stats_request() -> ApiRequest:
    return ApiRequest(path="general/stats")


def server_activity_request() -> ApiRequest:
    return ApiRequest(path="general/activity")


def achievement_info_request(achievement_id: int | str) -> ApiRequest:
    if isinstance(achievement_id, bool):
        raise InvalidRequestError("achievement_id", "expected an achievement number")
    achievement_id = _AchievementParam(achievement_id=str(achievement_id)).achievement_id
    return ApiRequest(path=f"achievements/{achievement_id}")


def league_ranks_request() -> ApiRequest:
    return ApiRequest(path="labs/league_ranks")


def scoreflow_request(user: str, mode: GameMode | str) -> ApiRequest:
    return ApiRequest(path=f"labs/scoreflow/{_user(user)}/{_mode(mode).value}")


def leagueflow_request(user: str) -> ApiRequest:
    return ApiRequest(path=f"labs/leagueflow/{_user(user)}")
