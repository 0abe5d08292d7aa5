from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from payloads import (
    USER_ID,
    encode,
    envelope,
    league_entry,
    news_item,
    server_stats,
    sprint_record,
    user_payload,
    xp_entry,
)
from tetrch.config import DEFAULT_BASE_URL, ClientConfig
from tetrch.services.client import TetraChannelClient
from tetrch.transport.http import HttpxTransport


@dataclass
class SentRequest:
    method: str
    path: str
    query: tuple[tuple[str, str], ...]
    headers: dict[str, str]


@dataclass
class FakeTransport:
    """Records each request and answers with a canned status and body."""

    status: int = 200
    body: bytes = b""
    error: Exception | None = None
    calls: list[SentRequest] = field(default_factory=list)

    def respond(self, document: Any, status: int = 200) -> None:
        self.status = status
        self.body = encode(document)

    async def send(self, method, path, query, headers):
        self.calls.append(SentRequest(method, path, tuple(query), dict(headers)))
        if self.error is not None:
            raise self.error
        return self.status, self.body


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def client(transport: FakeTransport) -> TetraChannelClient:
    return TetraChannelClient(transport, ClientConfig())


def create_upstream() -> FastAPI:
    """A small stand-in for the upstream API, served in-process."""
    app = FastAPI()
    app.state.seen_headers = []

    def not_found(msg: str) -> JSONResponse:
        return JSONResponse(status_code=404, content={"success": False, "error": {"msg": msg}})

    @app.middleware("http")
    async def record_headers(request: Request, call_next):
        app.state.seen_headers.append(dict(request.headers))
        return await call_next(request)

    @app.get("/api/users/{user}")
    async def get_user(user: str):
        if user != "osk":
            return not_found("No such user! | Either you mistyped something, or the account no longer exists.")
        return envelope(user_payload())

    @app.get("/api/users/by/{sort}")
    async def get_leaderboard(sort: str, request: Request):
        params = request.query_params
        if sort == "xp":
            entries = [xp_entry("alpha", 9000.0), xp_entry("bravo", 8000.0)]
        else:
            entries = [league_entry("alpha", 25000.0), league_entry("bravo", 24000.5)]
        if params.get("after") == "24000.5:0:0":
            entries = [league_entry("charlie", 23000.0)]
        return envelope({"entries": entries[: int(params.get("limit", 50))]})

    @app.get("/api/users/{user}/records/{mode}/{sort}")
    async def get_records(user: str, mode: str, sort: str):
        return envelope({"entries": [sprint_record(), {"gamemode": "40l", "_id": "broken"}]})

    @app.get("/api/users/search/{query}")
    async def search_user(query: str):
        if query != "discord:724976600873041940":
            return {"success": True, "data": None}
        return envelope({"user": {"_id": USER_ID, "username": "osk"}})

    @app.get("/api/general/stats")
    async def get_stats():
        return envelope(server_stats())

    @app.get("/api/news/{stream}")
    async def get_news(stream: str, request: Request):
        limit = int(request.query_params.get("limit", 25))
        items = [
            news_item("personalbest", {"username": "osk", "gametype": "40l", "result": 20000.5, "replayid": "abc"}),
            news_item("rankup", {"username": "osk", "rank": "x"}),
        ]
        return envelope({"news": items[:limit]})

    return app


@pytest.fixture()
def upstream() -> FastAPI:
    return create_upstream()


@pytest.fixture()
def upstream_client(upstream: FastAPI):
    """Factory for a real client whose httpx transport is routed to the fake upstream."""

    @asynccontextmanager
    async def connect(config: ClientConfig | None = None):
        http_client = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=upstream),
            base_url=DEFAULT_BASE_URL,
        )
        transport = HttpxTransport(http_client)
        try:
            yield TetraChannelClient(transport, config or ClientConfig())
        finally:
            await transport.aclose()

    return connect
