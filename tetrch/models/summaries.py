"""Per-user summaries that are not game records: zen, achievements, and the
combined ``/summaries`` payload, plus the achievement detail endpoint."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from tetrch.api.errors import DecodeError
from tetrch.models.leaderboard import OpenRole
from tetrch.models.primitives import (
    Flag,
    Integer,
    Number,
    OptionalInteger,
    OptionalNumber,
    OptionalTimestamp,
    expect_list,
    expect_object,
    join_path,
    validate_model,
)
from tetrch.models.rank import (
    DEFAULT_RANK_POLICY,
    LeagueSummary,
    RankPolicy,
    decode_league_summary,
)
from tetrch.models.schemas import RecordSummary, decode_record_summary


class ZenSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: Integer
    score: Number


class Achievement(BaseModel):
    """One achievement, with the user's progress on it when fetched for a user."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: Integer = Field(alias="k")
    category: str
    name: str
    object: str
    description: str = Field(alias="desc")
    order: OptionalInteger = Field(default=None, alias="o")
    rank_type: Integer = Field(alias="rt")
    value_type: Integer = Field(alias="vt")
    ar_type: Integer = Field(alias="art")
    minimum: Integer = Field(alias="min")
    decimals: Integer = Field(alias="deci")
    hidden: Flag = False
    value: OptionalNumber = Field(default=None, alias="v")
    additional_value: OptionalNumber = Field(default=None, alias="a")
    achieved_at: OptionalTimestamp = Field(default=None, alias="t")
    position: OptionalInteger = Field(default=None, alias="pos")
    total: OptionalInteger = None
    rank: OptionalInteger = None


class AllSummaries(BaseModel):
    model_config = ConfigDict(frozen=True)

    forty_lines: RecordSummary
    blitz: RecordSummary
    zenith: RecordSummary
    zenith_ex: RecordSummary
    league: LeagueSummary
    zen: ZenSummary
    achievements: tuple[Achievement, ...] = ()


class AchievementHolderUser(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(alias="_id")
    username: str
    role: OpenRole
    supporter: Flag = False
    country: str | None = None


class AchievementHolder(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user: AchievementHolderUser = Field(alias="u")
    value: Number = Field(alias="v")
    additional_value: OptionalNumber = Field(default=None, alias="a")
    achieved_at: OptionalTimestamp = Field(default=None, alias="t")


class AchievementCutoffs(BaseModel):
    """Values needed for each medal; ``total`` is how many users hold it."""

    model_config = ConfigDict(frozen=True)

    total: Integer
    diamond: OptionalNumber = None
    platinum: OptionalNumber = None
    gold: OptionalNumber = None
    silver: OptionalNumber = None
    bronze: OptionalNumber = None


class AchievementInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    achievement: Achievement
    leaderboard: tuple[AchievementHolder, ...]
    cutoffs: AchievementCutoffs


def decode_zen_summary(raw: Any, path: str = "data") -> ZenSummary:
    return validate_model(ZenSummary, raw, path)


def decode_achievements(raw: Any, path: str = "data") -> tuple[Achievement, ...]:
    items = expect_list(raw, path)
    return tuple(validate_model(Achievement, item, join_path(path, index)) for index, item in enumerate(items))


def decode_all_summaries(
    raw: Any,
    path: str = "data",
    policy: RankPolicy = DEFAULT_RANK_POLICY,
) -> AllSummaries:
    data = expect_object(raw, path)

    def record_summary(key: str) -> RecordSummary:
        if key not in data:
            raise DecodeError(join_path(path, key), "missing summary")
        return decode_record_summary(data[key], join_path(path, key))

    # Players who never touched league get ``{}``.
    league = data.get("league") or {}
    return AllSummaries(
        forty_lines=record_summary("40l"),
        blitz=record_summary("blitz"),
        zenith=record_summary("zenith"),
        zenith_ex=record_summary("zenithex"),
        league=decode_league_summary(league, join_path(path, "league"), policy),
        zen=decode_zen_summary(data.get("zen"), join_path(path, "zen")),
        achievements=decode_achievements(data.get("achievements", []), join_path(path, "achievements")),
    )


def decode_achievement_info(raw: Any, path: str = "data") -> AchievementInfo:
    return validate_model(AchievementInfo, raw, path)
