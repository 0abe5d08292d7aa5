"""Client facade over the TETRA CHANNEL endpoints."""

from __future__ import annotations

import logging
from datetime import datetime
from functools import partial
from typing import Any, Callable, TypeVar

from tetrch.api.requests import (
    ApiRequest,
    NewsStream,
    RecordsLeaderboardId,
    SearchCriteria,
    SocialConnection,
    SortBy,
    achievement_info_request,
    historical_league_request,
    league_ranks_request,
    leagueflow_request,
    news_request,
    records_leaderboard_request,
    scoreflow_request,
    search_record_request,
    search_user_request,
    server_activity_request,
    server_stats_request,
    user_achievements_request,
    user_all_summaries_request,
    user_league_request,
    user_leaderboard_request,
    user_profile_request,
    user_records_request,
    user_summary_request,
    user_zen_request,
)
from tetrch.config import ClientConfig
from tetrch.models.envelope import Envelope, decode_envelope
from tetrch.models.labs import (
    LeagueRanks,
    Leagueflow,
    Scoreflow,
    decode_league_ranks,
    decode_leagueflow,
    decode_scoreflow,
)
from tetrch.models.leaderboard import (
    AchievementLeaderboardEntry,
    HistoricalLeagueEntry,
    LeaderboardPage,
    LeagueLeaderboardEntry,
    XpLeaderboardEntry,
    decode_achievement_entry,
    decode_historical_entry,
    decode_league_entry,
    decode_page,
    decode_xp_entry,
)
from tetrch.models.rank import LeagueSummary, decode_league_summary
from tetrch.models.records import GameMode, GameRecord, decode_game_record
from tetrch.models.schemas import (
    NewsItem,
    RecordSummary,
    SearchedUser,
    ServerActivity,
    ServerStats,
    User,
    decode_news_item,
    decode_record_summary,
    decode_searched_user,
    decode_server_activity,
    decode_server_stats,
    decode_user,
)
from tetrch.models.summaries import (
    Achievement,
    AchievementInfo,
    AllSummaries,
    ZenSummary,
    decode_achievement_info,
    decode_achievements,
    decode_all_summaries,
    decode_zen_summary,
)
from tetrch.transport.http import Transport

log = logging.getLogger(__name__)

T = TypeVar("T")

SESSION_HEADER = "X-Session-ID"


def _optional(decode: Callable[[Any, str], T]) -> Callable[[Any, str], T | None]:
    def decode_optional(raw: Any, path: str) -> T | None:
        return None if raw is None else decode(raw, path)

    return decode_optional


class TetraChannelClient:
    """Typed access to the TETRA CHANNEL API.

    Every call returns an ``Envelope`` whose payload is the decoded result and
    raises a ``ClientError`` subclass on failure. The client holds no state
    besides its transport and config, so calls may run concurrently.
    """

    def __init__(self, transport: Transport, config: ClientConfig | None = None):
        self.transport = transport
        self.config = config or ClientConfig()

    def _headers(self) -> dict[str, str]:
        if self.config.session_id is None:
            return {}
        return {SESSION_HEADER: self.config.session_id}

    async def _call(self, request: ApiRequest, decode_payload: Callable[[Any, str], T]) -> Envelope[T]:
        log.debug("%s %s %s", request.method, request.path, dict(request.query))
        status, body = await self.transport.send(
            request.method,
            request.path,
            request.query,
            self._headers(),
        )
        return decode_envelope(status, body, decode_payload)

    def _page(self, decode_entry: Callable[[Any, str], T], key: str = "entries") -> Callable[[Any, str], LeaderboardPage[T]]:
        return lambda raw, path: decode_page(raw, path, decode_entry, key=key)

    async def get_user_profile(self, user: str) -> Envelope[User]:
        return await self._call(user_profile_request(user), decode_user)

    async def get_user_league(self, user: str) -> Envelope[LeagueSummary]:
        decode = partial(decode_league_summary, policy=self.config.rank_policy)
        return await self._call(user_league_request(user), decode)

    async def get_user_summary(self, user: str, mode: GameMode | str) -> Envelope[RecordSummary]:
        return await self._call(user_summary_request(user, mode), decode_record_summary)

    async def get_user_zen(self, user: str) -> Envelope[ZenSummary]:
        return await self._call(user_zen_request(user), decode_zen_summary)

    async def get_user_achievements(self, user: str) -> Envelope[tuple[Achievement, ...]]:
        return await self._call(user_achievements_request(user), decode_achievements)

    async def get_user_all_summaries(self, user: str) -> Envelope[AllSummaries]:
        decode = partial(decode_all_summaries, policy=self.config.rank_policy)
        return await self._call(user_all_summaries_request(user), decode)

    async def get_user_records(
        self,
        user: str,
        mode: GameMode | str,
        sort: SortBy | str = SortBy.TOP,
        criteria: SearchCriteria | None = None,
    ) -> Envelope[LeaderboardPage[GameRecord]]:
        request = user_records_request(user, mode, sort, criteria)
        return await self._call(request, self._page(decode_game_record))

    async def get_leaderboard(
        self,
        sort: SortBy | str,
        criteria: SearchCriteria | None = None,
    ) -> Envelope[LeaderboardPage[Any]]:
        request = user_leaderboard_request(sort, criteria)
        decoders: dict[SortBy, Callable[[Any, str], Any]] = {
            SortBy.LEAGUE: partial(decode_league_entry, policy=self.config.rank_policy),
            SortBy.XP: decode_xp_entry,
            SortBy.AR: decode_achievement_entry,
        }
        return await self._call(request, self._page(decoders[SortBy(sort)]))

    async def get_rank_leaderboard(
        self,
        criteria: SearchCriteria | None = None,
    ) -> Envelope[LeaderboardPage[LeagueLeaderboardEntry]]:
        return await self.get_leaderboard(SortBy.LEAGUE, criteria)

    async def get_xp_leaderboard(
        self,
        criteria: SearchCriteria | None = None,
    ) -> Envelope[LeaderboardPage[XpLeaderboardEntry]]:
        return await self.get_leaderboard(SortBy.XP, criteria)

    async def get_achievement_leaderboard(
        self,
        criteria: SearchCriteria | None = None,
    ) -> Envelope[LeaderboardPage[AchievementLeaderboardEntry]]:
        return await self.get_leaderboard(SortBy.AR, criteria)

    async def get_historical_league_leaderboard(
        self,
        season: str,
        criteria: SearchCriteria | None = None,
    ) -> Envelope[LeaderboardPage[HistoricalLeagueEntry]]:
        request = historical_league_request(season, criteria)
        decode = partial(decode_historical_entry, policy=self.config.rank_policy)
        return await self._call(request, self._page(decode))

    async def get_records_leaderboard(
        self,
        leaderboard_id: RecordsLeaderboardId,
        criteria: SearchCriteria | None = None,
    ) -> Envelope[LeaderboardPage[GameRecord]]:
        request = records_leaderboard_request(leaderboard_id, criteria)
        return await self._call(request, self._page(decode_game_record))

    async def search_record(
        self,
        user_id: str,
        mode: GameMode | str,
        played_at: datetime | int,
    ) -> Envelope[GameRecord | None]:
        request = search_record_request(user_id, mode, played_at)
        return await self._call(request, _optional(decode_game_record))

    async def search_user(self, connection: SocialConnection) -> Envelope[SearchedUser | None]:
        return await self._call(search_user_request(connection), decode_searched_user)

    async def get_server_stats(self) -> Envelope[ServerStats]:
        return await self._call(server_stats_request(), decode_server_stats)

    async def get_server_activity(self) -> Envelope[ServerActivity]:
        return await self._call(server_activity_request(), decode_server_activity)

    async def get_latest_news(
        self,
        stream: NewsStream | None = None,
        limit: int | None = None,
    ) -> Envelope[LeaderboardPage[NewsItem]]:
        if stream is None:
            stream = NewsStream()
        return await self._call(news_request(stream, limit), self._page(decode_news_item, key="news"))

    async def get_all_news(self, limit: int | None = None) -> Envelope[LeaderboardPage[NewsItem]]:
        return await self._call(news_request(None, limit), self._page(decode_news_item, key="news"))

    async def get_achievement_info(self, achievement_id: int | str) -> Envelope[AchievementInfo]:
        return await self._call(achievement_info_request(achievement_id), decode_achievement_info)

    async def get_league_ranks(self) -> Envelope[LeagueRanks]:
        return await self._call(league_ranks_request(), decode_league_ranks)

    async def get_scoreflow(self, user: str, mode: GameMode | str) -> Envelope[Scoreflow]:
        return await self._call(scoreflow_request(user, mode), decode_scoreflow)

    async def get_leagueflow(self, user: str) -> Envelope[Leagueflow]:
        return await self._call(leagueflow_request(user), decode_leagueflow)
