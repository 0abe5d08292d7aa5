"""Game records, one variant per game mode.

The ``gamemode`` discriminant is read first and selects the field set.
Codes this client does not know decode into ``UnknownRecord`` with the raw
payload preserved, so a new upstream mode never breaks a caller.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tetrch.models.leaderboard import Cursor
from tetrch.models.primitives import (
    Flag,
    Integer,
    Number,
    OptionalInteger,
    OptionalNumber,
    Timestamp,
    UnknownCode,
    expect_object,
    open_code,
    validate_model,
)

REPLAY_URL = "https://tetr.io/#R:{replay_id}"


def _null_is_empty(value: Any) -> Any:
    return {} if value is None else value


class GameMode(str, Enum):
    FORTY_LINES = "40l"
    BLITZ = "blitz"
    ZENITH = "zenith"
    ZENITH_EX = "zenithex"
    LEAGUE = "league"


class RecordUser(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    avatar_revision: OptionalInteger = None
    banner_revision: OptionalInteger = None
    country: str | None = None
    supporter: Flag = False


class ClearStats(BaseModel):
    """Line-clear counts by clear type.

    ``pentas`` and ``tspinpentas`` only exist in newer payloads; older ones
    simply leave them at zero. Labels not listed here are kept as extras.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    singles: int = 0
    doubles: int = 0
    triples: int = 0
    quads: int = 0
    pentas: int = 0
    realtspins: int = 0
    minitspins: int = 0
    minitspinsingles: int = 0
    tspinsingles: int = 0
    minitspindoubles: int = 0
    tspindoubles: int = 0
    minitspintriples: int = 0
    tspintriples: int = 0
    minitspinquads: int = 0
    tspinquads: int = 0
    tspinpentas: int = 0
    allclear: int = 0

    @property
    def unrecognised(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class Finesse(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    faults: OptionalInteger = None
    perfect_pieces: OptionalInteger = Field(default=None, alias="perfectpieces")


class GarbageStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    sent: OptionalInteger = None
    received: OptionalInteger = None


class ZenithProgress(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    altitude: Number
    peak_rank: OptionalNumber = Field(default=None, alias="peakrank")
    floor: OptionalInteger = None
    revives: OptionalInteger = None


class SoloStats(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    final_time_ms: Number = Field(alias="finaltime")
    pieces_placed: Integer = Field(alias="piecesplaced")
    inputs: OptionalInteger = None
    lines: OptionalInteger = None
    clears: ClearStats = ClearStats()
    finesse: Finesse = Finesse()

    @field_validator("clears", "finesse", mode="before")
    @classmethod
    def _optional_sections(cls, value: Any) -> Any:
        return _null_is_empty(value)


class BlitzStats(SoloStats):
    score: Integer
    level: OptionalInteger = None


class ZenithStats(SoloStats):
    zenith: ZenithProgress
    kills: OptionalInteger = None
    garbage: GarbageStats = GarbageStats()

    @field_validator("garbage", mode="before")
    @classmethod
    def _garbage(cls, value: Any) -> Any:
        return _null_is_empty(value)


class SoloResults(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    stats: SoloStats
    gameover_reason: str | None = Field(default=None, alias="gameoverreason")


class BlitzResults(SoloResults):
    stats: BlitzStats


class ZenithResults(SoloResults):
    stats: ZenithStats


class ZenithMods(BaseModel):
    model_config = ConfigDict(frozen=True)

    mods: tuple[str, ...] = ()

    @field_validator("mods", mode="before")
    @classmethod
    def _mods(cls, value: Any) -> Any:
        return () if value is None else value


class ZenithExtras(BaseModel):
    model_config = ConfigDict(frozen=True)

    zenith: ZenithMods = ZenithMods()

    @field_validator("zenith", mode="before")
    @classmethod
    def _zenith(cls, value: Any) -> Any:
        return _null_is_empty(value)


class _RecordBase(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(alias="_id")
    mode: GameMode = Field(alias="gamemode")
    played_at: Timestamp = Field(alias="ts")
    replay_id: str | None = Field(default=None, alias="replayid")
    user: RecordUser | None = None
    is_personal_best: Flag = Field(default=False, alias="pb")
    was_personal_best: Flag = Field(default=False, alias="oncepb")
    is_disputed: Flag = Field(default=False, alias="disputed")
    leaderboards: tuple[str, ...] = ()
    revolution: str | None = None
    cursor: Cursor = Field(default=None, alias="p")

    @property
    def replay_url(self) -> str | None:
        if self.replay_id is None:
            return None
        return REPLAY_URL.format(replay_id=self.replay_id)


class _SinglePlayerRecord(_RecordBase):
    results: SoloResults

    @property
    def final_time_ms(self) -> float:
        return self.results.stats.final_time_ms

    @property
    def pieces_placed(self) -> int:
        return self.results.stats.pieces_placed

    @property
    def inputs(self) -> int | None:
        return self.results.stats.inputs

    @property
    def lines(self) -> int | None:
        return self.results.stats.lines

    @property
    def clears(self) -> ClearStats:
        return self.results.stats.clears

    @property
    def finesse_faults(self) -> int | None:
        return self.results.stats.finesse.faults

    @property
    def perfect_pieces(self) -> int | None:
        return self.results.stats.finesse.perfect_pieces

    @property
    def gameover_reason(self) -> str | None:
        return self.results.gameover_reason

    def pps(self) -> float | None:
        if self.final_time_ms <= 0:
            return None
        return self.pieces_placed / (self.final_time_ms / 1000)

    def kps(self) -> float | None:
        if self.inputs is None or self.final_time_ms <= 0:
            return None
        return self.inputs / (self.final_time_ms / 1000)

    def finesse_rate(self) -> float | None:
        if self.perfect_pieces is None or self.pieces_placed == 0:
            return None
        return self.perfect_pieces / self.pieces_placed * 100


class SprintRecord(_SinglePlayerRecord):
    kind: Literal["sprint"] = "sprint"


class BlitzRecord(_SinglePlayerRecord):
    kind: Literal["blitz"] = "blitz"

    results: BlitzResults

    @property
    def score(self) -> int:
        return self.results.stats.score

    @property
    def level(self) -> int | None:
        return self.results.stats.level

    def spp(self) -> float | None:
        if self.pieces_placed == 0:
            return None
        return self.score / self.pieces_placed


class ZenithRecord(_SinglePlayerRecord):
    kind: Literal["zenith"] = "zenith"

    results: ZenithResults
    extras: ZenithExtras = ZenithExtras()

    @field_validator("extras", mode="before")
    @classmethod
    def _extras(cls, value: Any) -> Any:
        return _null_is_empty(value)

    @property
    def altitude(self) -> float:
        return self.results.stats.zenith.altitude

    @property
    def peak_rank(self) -> float | None:
        return self.results.stats.zenith.peak_rank

    @property
    def floor(self) -> int | None:
        return self.results.stats.zenith.floor

    @property
    def revives(self) -> int | None:
        return self.results.stats.zenith.revives

    @property
    def kills(self) -> int | None:
        return self.results.stats.kills

    @property
    def garbage_sent(self) -> int | None:
        return self.results.stats.garbage.sent

    @property
    def mods(self) -> tuple[str, ...]:
        return self.extras.zenith.mods


class VersusStats(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    apm: OptionalNumber = None
    pps: OptionalNumber = None
    vs_score: OptionalNumber = Field(default=None, alias="vsscore")
    lines_sent: OptionalInteger = Field(default=None, alias="garbagesent")
    lines_received: OptionalInteger = Field(default=None, alias="garbagereceived")


class VersusPlayer(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user_id: str = Field(alias="id")
    username: str
    active: Flag = True
    wins: Integer
    stats: VersusStats = VersusStats()

    @field_validator("stats", mode="before")
    @classmethod
    def _stats(cls, value: Any) -> Any:
        return _null_is_empty(value)

    @property
    def apm(self) -> float | None:
        return self.stats.apm

    @property
    def pps(self) -> float | None:
        return self.stats.pps

    @property
    def vs_score(self) -> float | None:
        return self.stats.vs_score

    @property
    def lines_sent(self) -> int | None:
        return self.stats.lines_sent

    @property
    def lines_received(self) -> int | None:
        return self.stats.lines_received


class VersusResults(BaseModel):
    model_config = ConfigDict(frozen=True)

    leaderboard: tuple[VersusPlayer, ...]
    rounds: tuple[Any, ...] = ()


class VersusRecord(_RecordBase):
    kind: Literal["versus"] = "versus"

    results: VersusResults

    @property
    def players(self) -> tuple[VersusPlayer, ...]:
        return self.results.leaderboard

    @property
    def round_count(self) -> int:
        return len(self.results.rounds)

    @property
    def winner(self) -> VersusPlayer | None:
        if not self.players:
            return None
        return max(self.players, key=lambda player: player.wins)


class UnknownRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["unknown"] = "unknown"
    mode: UnknownCode
    raw: dict[str, Any]

    @property
    def id(self) -> str | None:
        value = self.raw.get("_id")
        return value if isinstance(value, str) else None

    @property
    def replay_id(self) -> str | None:
        value = self.raw.get("replayid")
        return value if isinstance(value, str) else None


GameRecord = Annotated[
    Union[SprintRecord, BlitzRecord, ZenithRecord, VersusRecord, UnknownRecord],
    Field(discriminator="kind"),
]

_RECORD_MODELS: dict[GameMode, type[_RecordBase]] = {
    GameMode.FORTY_LINES: SprintRecord,
    GameMode.BLITZ: BlitzRecord,
    GameMode.ZENITH: ZenithRecord,
    GameMode.ZENITH_EX: ZenithRecord,
    GameMode.LEAGUE: VersusRecord,
}


def decode_game_record(raw: Any, path: str = "record") -> SprintRecord | BlitzRecord | ZenithRecord | VersusRecord | UnknownRecord:
    data = expect_object(raw, path)
    mode = open_code(GameMode, data.get("gamemode"))
    if isinstance(mode, UnknownCode):
        return UnknownRecord(mode=mode, raw=dict(data))
    return validate_model(_RECORD_MODELS[mode], data, path)
