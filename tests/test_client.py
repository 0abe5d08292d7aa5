from __future__ import annotations

import httpx
import pytest

from payloads import (
    USER_ID,
    achievement,
    envelope,
    league_data,
    league_entry,
    league_ranks,
    sprint_record,
    user_payload,
    xp_entry,
)
from tetrch.api.errors import ApiError, InvalidRequestError, TransportError
from tetrch.api.requests import (
    NewsStream,
    RecordsLeaderboardId,
    SearchCriteria,
    SocialConnection,
    SortBy,
)
from tetrch.config import ClientConfig
from tetrch.main import open_client
from tetrch.models.envelope import CacheStatus
from tetrch.models.labs import MatchResult
from tetrch.models.rank import Placement, RankPolicy, Ranked, Tier, Unranked
from tetrch.models.records import SprintRecord
from tetrch.models.schemas import PersonalBestNews
from tetrch.services.client import TetraChannelClient
from tetrch.transport.http import HttpxTransport

pytestmark = pytest.mark.anyio


async def test_get_user_profile(client, transport):
    transport.respond(envelope(user_payload()))

    result = await client.get_user_profile("OSK")

    assert result.payload.username == "osk"
    assert result.cache_status is CacheStatus.HIT
    sent = transport.calls[0]
    assert sent.method == "GET"
    assert sent.path == "users/osk"
    assert sent.headers == {}


async def test_session_id_is_sent_when_configured(transport):
    client = TetraChannelClient(transport, ClientConfig(session_id="abc123"))
    transport.respond(envelope(user_payload()))

    await client.get_user_profile("osk")

    assert transport.calls[0].headers == {"X-Session-ID": "abc123"}


async def test_api_errors_surface_with_their_code(client, transport):
    transport.respond({"success": False, "error": {"msg": "No such user!"}}, status=404)

    with pytest.raises(ApiError) as exc_info:
        await client.get_user_profile("nobody")

    assert exc_info.value.code == "not_found"
    assert exc_info.value.message == "No such user!"


async def test_transport_errors_surface_unchanged(client, transport):
    transport.error = TransportError("connection refused")

    with pytest.raises(TransportError) as exc_info:
        await client.get_server_stats()

    assert exc_info.value.code == "transport_error"
    assert len(transport.calls) == 1


async def test_invalid_requests_never_reach_the_transport(client, transport):
    with pytest.raises(InvalidRequestError):
        await client.get_leaderboard(SortBy.RECENT)
    with pytest.raises(InvalidRequestError):
        await client.get_user_records("osk", "league", SortBy.PROGRESSION)

    assert transport.calls == []


async def test_user_league_uses_configured_policy(transport):
    transport.respond(envelope({"league": {"rank": "z", "gamesplayed": 4, "tr": -1}}))
    policy = RankPolicy(placement_overrides_sentinel=True)
    client = TetraChannelClient(transport, ClientConfig(rank_policy=policy))

    result = await client.get_user_league("osk")

    assert result.payload.standing == Placement(games_played_in_placement=4)
    assert transport.calls[0].path == "users/osk/summaries/league"


async def test_rank_leaderboard_page(client, transport):
    entries = [league_entry("alpha", 25000.0), {"_id": "x", "username": "broken"}]
    transport.respond(envelope({"entries": entries}))

    result = await client.get_rank_leaderboard(SearchCriteria(limit=2, country="jp"))

    page = result.payload
    assert [entry.username for entry in page.entries] == ["alpha"]
    assert isinstance(page.entries[0].league.standing, Ranked)
    assert page.failures[0].path == "data.entries[1].league"
    assert transport.calls[0].query == (("limit", "2"), ("country", "JP"))


async def test_xp_leaderboard_cursor_round_trip(client, transport):
    transport.respond(envelope({"entries": [xp_entry("alpha", 9000.25), xp_entry("bravo", 8000.5)]}))
    first = await client.get_xp_leaderboard(SearchCriteria(limit=2))

    await client.get_xp_leaderboard(SearchCriteria(limit=2, after=first.payload.next_cursor))

    assert first.payload.next_cursor == "8000.5:0:0"
    assert transport.calls[1].path == "users/by/xp"
    assert ("after", "8000.5:0:0") in transport.calls[1].query


async def test_achievement_leaderboard(client, transport):
    transport.respond(envelope({"entries": [xp_entry("alpha", 1.0, ar=300)]}))

    result = await client.get_achievement_leaderboard()

    assert result.payload.entries[0].achievement_rating == 300
    assert transport.calls[0].path == "users/by/ar"


async def test_historical_league_leaderboard(client, transport):
    entry = dict(league_data(), _id="abc", season="1", username="alpha")
    transport.respond(envelope({"entries": [entry]}))

    result = await client.get_historical_league_leaderboard("1")

    assert result.payload.entries[0].season == "1"
    assert transport.calls[0].path == "users/history/league/1"


async def test_user_records(client, transport):
    transport.respond(envelope({"entries": [sprint_record()]}))

    result = await client.get_user_records("OSK", "40l", "recent", SearchCriteria(limit=1))

    assert isinstance(result.payload.entries[0], SprintRecord)
    assert transport.calls[0].path == "users/osk/records/40l/recent"


async def test_records_leaderboard(client, transport):
    transport.respond(envelope({"entries": [sprint_record()]}))

    await client.get_records_leaderboard(RecordsLeaderboardId(gamemode="40l"))

    assert transport.calls[0].path == "records/40l_global"


async def test_user_summary(client, transport):
    transport.respond(envelope({"record": sprint_record(), "rank": 5, "rank_local": 1}))

    result = await client.get_user_summary("osk", "40l")

    assert result.payload.rank == 5
    assert transport.calls[0].path == "users/osk/summaries/40l"


async def test_search_record(client, transport):
    transport.respond(envelope(sprint_record()))

    result = await client.search_record(USER_ID, "40l", 1_721_908_800_000)

    assert isinstance(result.payload, SprintRecord)
    assert transport.calls[0].query[-1] == ("ts", "1721908800000")


async def test_search_user_not_found(client, transport):
    transport.respond({"success": True, "data": None})

    result = await client.search_user(SocialConnection.discord("1"))

    assert result.payload is None


async def test_server_activity(client, transport):
    transport.respond(envelope({"activity": [5, 8, 2]}))

    result = await client.get_server_activity()

    assert result.payload.peak == 8
    assert transport.calls[0].path == "general/activity"


async def test_latest_news_defaults_to_global(client, transport):
    transport.respond(envelope({"news": []}))

    await client.get_latest_news(limit=10)
    await client.get_all_news()

    assert transport.calls[0].path == "news/global"
    assert transport.calls[0].query == (("limit", "10"),)
    assert transport.calls[1].path == "news/"


async def test_end_to_end_through_httpx(upstream, upstream_client):
    async with upstream_client(ClientConfig(session_id="session-1")) as client:
        profile = await client.get_user_profile("Osk")
        stats = await client.get_server_stats()
        found = await client.search_user(SocialConnection.discord("724976600873041940"))
        missing = await client.search_user(SocialConnection.discord("1"))

    assert profile.payload.id == USER_ID
    assert profile.cached_at is not None
    assert stats.payload.registered_players == 800
    assert found.payload.username == "osk"
    assert missing.payload is None
    assert upstream.state.seen_headers[0]["x-session-id"] == "session-1"


async def test_end_to_end_pagination(upstream_client):
    async with upstream_client() as client:
        first = await client.get_rank_leaderboard(SearchCriteria(limit=2))
        second = await client.get_rank_leaderboard(SearchCriteria(after=first.payload.next_cursor))

    assert [entry.username for entry in first.payload.entries] == ["alpha", "bravo"]
    assert first.payload.next_cursor == "24000.5:0:0"
    assert [entry.username for entry in second.payload.entries] == ["charlie"]


async def test_end_to_end_partial_records_and_news(upstream_client):
    async with upstream_client() as client:
        records = await client.get_user_records("osk", "40l")
        news = await client.get_latest_news(NewsStream(user_id=USER_ID), limit=1)

    assert len(records.payload) == 1
    assert records.payload.is_partial
    assert isinstance(news.payload.entries[0].data, PersonalBestNews)
    assert len(news.payload) == 1


async def test_end_to_end_not_found(upstream_client):
    async with upstream_client() as client:
        with pytest.raises(ApiError) as exc_info:
            await client.get_user_profile("ghost")

    assert exc_info.value.code == "not_found"
    assert exc_info.value.status == 404


async def test_httpx_failures_become_transport_errors():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(refuse), base_url="https://ch.tetr.io/api/")
    transport = HttpxTransport(http_client)
    client = TetraChannelClient(transport)
    try:
        with pytest.raises(TransportError) as exc_info:
            await client.get_server_stats()
    finally:
        await transport.aclose()

    assert exc_info.value.details == {"exception": "ConnectError"}


async def test_open_client_closes_the_http_client():
    async with open_client(ClientConfig(timeout=3.0)) as client:
        http_client = client.transport.client
        assert str(http_client.base_url) == "https://ch.tetr.io/api/"
        assert not http_client.is_closed

    assert http_client.is_closed


async def test_user_zen(client, transport):
    transport.respond(envelope({"level": 42, "score": 123_456}))

    result = await client.get_user_zen("osk")

    assert result.payload.level == 42
    assert transport.calls[0].path == "users/osk/summaries/zen"


async def test_user_achievements(client, transport):
    transport.respond(envelope([achievement(), achievement(16, name="Second")]))

    result = await client.get_user_achievements("osk")

    assert [item.name for item in result.payload] == ["The Spire", "Second"]
    assert transport.calls[0].path == "users/osk/summaries/achievements"


async def test_user_all_summaries_uses_configured_policy(transport):
    summaries = {
        "40l": {},
        "blitz": {},
        "zenith": {},
        "zenithex": {},
        "league": {"rank": "z", "gamesplayed": 3},
        "zen": {"level": 1, "score": 0},
        "achievements": [],
    }
    transport.respond(envelope(summaries))
    default = TetraChannelClient(transport, ClientConfig())
    lenient = TetraChannelClient(transport, ClientConfig(rank_policy=RankPolicy(placement_overrides_sentinel=True)))

    first = await default.get_user_all_summaries("osk")
    second = await lenient.get_user_all_summaries("osk")

    assert first.payload.league.standing == Unranked()
    assert second.payload.league.standing == Placement(games_played_in_placement=3)
    assert transport.calls[0].path == "users/osk/summaries"


async def test_achievement_info(client, transport):
    transport.respond(envelope({"achievement": achievement(), "leaderboard": [], "cutoffs": {"total": 0}}))

    result = await client.get_achievement_info(15)

    assert result.payload.achievement.id == 15
    assert result.payload.leaderboard == ()
    assert transport.calls[0].path == "achievements/15"


async def test_labs_endpoints(client, transport):
    transport.respond(envelope(league_ranks()))
    ranks = await client.get_league_ranks()

    transport.respond(envelope({"startTime": 0, "points": [[0, 1, 20000]]}))
    scoreflow = await client.get_scoreflow("osk", "40l")

    transport.respond(envelope({"startTime": 0, "points": [[0, 2, 15000.0, 15100.0]]}))
    leagueflow = await client.get_leagueflow("osk")

    assert ranks.payload.cutoff(Tier.X_PLUS).position == 30
    assert scoreflow.payload.points[0].is_personal_best
    assert leagueflow.payload.points[0].outcome is MatchResult.DEFEAT
    assert [sent.path for sent in transport.calls] == [
        "labs/league_ranks",
        "labs/scoreflow/osk/40l",
        "labs/leagueflow/osk",
    ]


async def test_connection_id_is_sent_as_one_path_segment():
    seen: list[httpx.URL] = []

    def answer(request: httpx.Request) -> httpx.Response:
        seen.append(request.url)
        return httpx.Response(200, json={"success": True, "data": None})

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(answer), base_url="https://ch.tetr.io/api/")
    transport = HttpxTransport(http_client)
    client = TetraChannelClient(transport)
    try:
        await client.search_user(SocialConnection(service="steam", id="76561198000000000"))
    finally:
        await transport.aclose()

    assert seen[0].path == "/api/users/search/steam:76561198000000000"
    assert seen[0].query == b""
