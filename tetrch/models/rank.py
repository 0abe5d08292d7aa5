"""Competitive standing (TETRA LEAGUE) decoding.

A player's league data arrives in one of several shapes: fully ranked, still
in placement, or unranked, and older cached payloads wrap the whole thing in
an extra ``{"league": {...}}`` layer. ``decode_rank_standing`` folds all of
them into exactly one ``RankStanding`` variant.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Literal, Mapping, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from tetrch.api.errors import DecodeError
from tetrch.models.primitives import (
    Count,
    Flag,
    OptionalInteger,
    OptionalNumber,
    UnknownCode,
    count,
    expect_object,
    join_path,
    open_code,
    optional_int,
    optional_number,
    validate_model,
)

LEAGUE_KEYS = frozenset({"rank", "gamesplayed", "tr", "rating", "glicko"})
ICON_URL = "https://tetr.io/res/league-ranks/{tier}.png"


class Tier(str, Enum):
    D = "d"
    D_PLUS = "d+"
    C_MINUS = "c-"
    C = "c"
    C_PLUS = "c+"
    B_MINUS = "b-"
    B = "b"
    B_PLUS = "b+"
    A_MINUS = "a-"
    A = "a"
    A_PLUS = "a+"
    S_MINUS = "s-"
    S = "s"
    S_PLUS = "s+"
    SS = "ss"
    U = "u"
    X = "x"
    X_PLUS = "x+"
    # Upstream sentinel for "no rank".
    Z = "z"

    @property
    def display_name(self) -> str:
        return "Unranked" if self is Tier.Z else self.value.upper()

    @property
    def color(self) -> int:
        return TIER_COLORS[self]

    @property
    def icon_url(self) -> str:
        return ICON_URL.format(tier=self.value)


TIER_COLORS = {
    Tier.D: 0x907591,
    Tier.D_PLUS: 0x8E6091,
    Tier.C_MINUS: 0x79558C,
    Tier.C: 0x733E8F,
    Tier.C_PLUS: 0x552883,
    Tier.B_MINUS: 0x5650C7,
    Tier.B: 0x4F64C9,
    Tier.B_PLUS: 0x4F99C0,
    Tier.A_MINUS: 0x3BB687,
    Tier.A: 0x46AD51,
    Tier.A_PLUS: 0x46AD51,
    Tier.S_MINUS: 0xB2972B,
    Tier.S: 0xE0A71B,
    Tier.S_PLUS: 0xD8AF0E,
    Tier.SS: 0xDB8B1F,
    Tier.U: 0xFF3813,
    Tier.X: 0xFF45FF,
    Tier.X_PLUS: 0xA763EA,
    Tier.Z: 0x767671,
}


@dataclass(frozen=True, slots=True)
class RankPolicy:
    """How to resolve a sentinel tier that arrives next to a placement counter.

    By default the tier wins: a sentinel means ``Unranked`` even if a stale
    placement counter is still present.
    """

    placement_overrides_sentinel: bool = False


DEFAULT_RANK_POLICY = RankPolicy()


def _optional_tier(value: Any) -> Tier | UnknownCode | None:
    return None if value is None else open_code(Tier, value)


OptionalTier = Annotated[Tier | UnknownCode | None, BeforeValidator(_optional_tier)]


class Ranked(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["ranked"] = "ranked"
    tier: Tier | UnknownCode
    rating: float
    standing: int | None = None
    percentile: float | None = None


class Placement(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["placement"] = "placement"
    games_played_in_placement: int


class Unranked(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["unranked"] = "unranked"


RankStanding = Annotated[Union[Ranked, Placement, Unranked], Field(discriminator="kind")]


class LeagueSummary(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    standing: RankStanding
    games_played: Count = Field(default=0, alias="gamesplayed")
    games_won: Count = Field(default=0, alias="gameswon")
    glicko: OptionalNumber = None
    rd: OptionalNumber = None
    gxe: OptionalNumber = None
    apm: OptionalNumber = None
    pps: OptionalNumber = None
    vs: OptionalNumber = None
    decaying: Flag = False
    best_tier: OptionalTier = Field(default=None, alias="bestrank")
    percentile_tier: OptionalTier = Field(default=None, alias="percentile_rank")
    next_tier: OptionalTier = Field(default=None, alias="next_rank")
    prev_tier: OptionalTier = Field(default=None, alias="prev_rank")
    next_at: OptionalInteger = None
    prev_at: OptionalInteger = None

    def rank_progress(self) -> float | None:
        """Percent of the way from the previous tier's cutoff to the next one."""
        if not isinstance(self.standing, Ranked) or self.standing.standing is None:
            return None
        if self.prev_at is None or self.next_at is None:
            return None
        if self.prev_at < 0 or self.next_at < 0 or self.next_at == self.prev_at:
            return None
        return (self.standing.standing - self.prev_at) / (self.next_at - self.prev_at) * 100


def unwrap_league(raw: Any, path: str) -> tuple[Mapping[str, Any], str]:
    """Return the flat league mapping, descending into the legacy wrapper if needed."""
    data = expect_object(raw, path)
    if not data or LEAGUE_KEYS & data.keys():
        return data, path
    nested = data.get("league")
    if nested is not None:
        return expect_object(nested, join_path(path, "league")), join_path(path, "league")
    raise DecodeError(path, "no league fields in either the flat or the nested shape")


def _standing_position(value: Any, path: str) -> int | None:
    position = optional_int(value, path)
    # -1 is upstream's "no standing".
    if position is not None and position < 0:
        return None
    return position


def classify_standing(
    data: Mapping[str, Any],
    path: str,
    policy: RankPolicy = DEFAULT_RANK_POLICY,
) -> Ranked | Placement | Unranked:
    counter = count(data.get("gamesplayed"), join_path(path, "gamesplayed"))
    raw_tier = data.get("rank")

    if raw_tier is not None:
        tier = open_code(Tier, raw_tier)
        if tier is not Tier.Z:
            rating_key = "tr" if "tr" in data else "rating"
            rating = optional_number(data.get(rating_key), join_path(path, rating_key))
            if rating is None:
                raise DecodeError(join_path(path, rating_key), "ranked player has no rating")
            return Ranked(
                tier=tier,
                rating=rating,
                standing=_standing_position(data.get("standing"), join_path(path, "standing")),
                percentile=optional_number(data.get("percentile"), join_path(path, "percentile")),
            )
        if policy.placement_overrides_sentinel and counter > 0:
            return Placement(games_played_in_placement=counter)
        return Unranked()

    if counter > 0:
        return Placement(games_played_in_placement=counter)
    return Unranked()


def decode_rank_standing(
    raw: Any,
    path: str = "league",
    policy: RankPolicy = DEFAULT_RANK_POLICY,
) -> Ranked | Placement | Unranked:
    data, path = unwrap_league(raw, path)
    return classify_standing(data, path, policy)


def decode_league_summary(
    raw: Any,
    path: str = "data",
    policy: RankPolicy = DEFAULT_RANK_POLICY,
) -> LeagueSummary:
    data, path = unwrap_league(raw, path)
    standing = classify_standing(data, path, policy)
    # ``standing`` upstream is the leaderboard position, already folded into the variant.
    return validate_model(LeagueSummary, {**data, "standing": standing}, path)
