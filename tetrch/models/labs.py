"""Experimental ``labs/`` endpoints: tier distribution and per-user history graphs.

Upstream documents these as unstable, so the models here stay thin. Graph
points arrive as fixed-length arrays and are named on the way in.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from tetrch.models.primitives import (
    Integer,
    Number,
    OptionalNumber,
    Timestamp,
    validate_model,
)
from tetrch.models.rank import Tier


def _named_points(value: Any, names: tuple[str, ...]) -> Any:
    if not isinstance(value, list):
        return value
    points = []
    for point in value:
        if not isinstance(point, list) or len(point) != len(names):
            raise ValueError(f"expected points of the form [{', '.join(names)}]")
        points.append(dict(zip(names, point)))
    return points


class TierCutoff(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    position: Integer = Field(alias="pos")
    percentile: Number
    rating: Number = Field(alias="tr")
    target_rating: Number = Field(alias="targettr")
    apm: OptionalNumber = None
    pps: OptionalNumber = None
    vs: OptionalNumber = None
    count: Integer


class TierDistribution(BaseModel):
    """Cutoffs keyed by the raw tier code (``"x+"``, ``"a-"`` ...)."""

    model_config = ConfigDict(frozen=True)

    total: Integer
    tiers: dict[str, TierCutoff]

    @model_validator(mode="before")
    @classmethod
    def _split_total(cls, value: Any) -> Any:
        if not isinstance(value, dict) or "tiers" in value:
            return value
        tiers = {code: cutoff for code, cutoff in value.items() if code != "total"}
        return {"total": value.get("total"), "tiers": tiers}


class LeagueRanks(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(alias="_id")
    stream: str = Field(alias="s")
    created_at: Timestamp = Field(alias="t")
    data: TierDistribution

    def cutoff(self, tier: Tier) -> TierCutoff | None:
        return self.data.tiers.get(tier.value)


class ScoreflowPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    offset_ms: Integer
    is_personal_best: bool
    score: Number


class Scoreflow(BaseModel):
    """A user's score history in one mode, offsets counted from ``start_time``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    start_time: Timestamp = Field(alias="startTime")
    points: tuple[ScoreflowPoint, ...] = ()

    @field_validator("points", mode="before")
    @classmethod
    def _points(cls, value: Any) -> Any:
        return _named_points(value, ("offset_ms", "is_personal_best", "score"))

    def played_at(self, point: ScoreflowPoint) -> datetime:
        return self.start_time + timedelta(milliseconds=point.offset_ms)


class MatchResult(int, Enum):
    VICTORY = 1
    DEFEAT = 2
    VICTORY_BY_DISQUALIFICATION = 3
    DEFEAT_BY_DISQUALIFICATION = 4
    TIE = 5
    NO_CONTEST = 6
    NULLIFIED = 7


class LeagueflowPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    offset_ms: Integer
    result: Integer
    rating_after: Number
    opponent_rating: Number

    @property
    def outcome(self) -> MatchResult | None:
        try:
            return MatchResult(self.result)
        except ValueError:
            return None

    @property
    def has_opponent_rating(self) -> bool:
        # Upstream sends 0 when the opponent had no rating.
        return self.opponent_rating != 0


class Leagueflow(BaseModel):
    """A user's league match history, offsets counted from ``start_time``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    start_time: Timestamp = Field(alias="startTime")
    points: tuple[LeagueflowPoint, ...] = ()

    @field_validator("points", mode="before")
    @classmethod
    def _points(cls, value: Any) -> Any:
        return _named_points(value, ("offset_ms", "result", "rating_after", "opponent_rating"))

    def played_at(self, point: LeagueflowPoint) -> datetime:
        return self.start_time + timedelta(milliseconds=point.offset_ms)


def decode_league_ranks(raw: Any, path: str = "data") -> LeagueRanks:
    return validate_model(LeagueRanks, raw, path)


def decode_scoreflow(raw: Any, path: str = "data") -> Scoreflow:
    return validate_model(Scoreflow, raw, path)


def decode_leagueflow(raw: Any, path: str = "data") -> Leagueflow:
    return validate_model(Leagueflow, raw, path)
