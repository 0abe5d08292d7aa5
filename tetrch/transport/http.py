"""HTTP transport used by the client, plus the default httpx implementation."""

from __future__ import annotations

import logging
from typing import Mapping, Protocol, Sequence

import httpx

from tetrch.api.errors import TransportError
from tetrch.config import USER_AGENT, ClientConfig

log = logging.getLogger(__name__)


class Transport(Protocol):
    async def send(
        self,
        method: str,
        path: str,
        query: Sequence[tuple[str, str]],
        headers: Mapping[str, str],
    ) -> tuple[int, bytes]:
        """Send one request; return the status and raw body or raise ``TransportError``."""
        ...


def create_http_client(config: ClientConfig) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=config.base_url,
        timeout=config.timeout,
        headers={"Accept": "application/json", "User-Agent": USER_AGENT},
    )


class HttpxTransport:
    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def send(
        self,
        method: str,
        path: str,
        query: Sequence[tuple[str, str]],
        headers: Mapping[str, str],
    ) -> tuple[int, bytes]:
        try:
            response = await self.client.request(
                method,
                path,
                params=list(query),
                headers=dict(headers),
            )
        except httpx.HTTPError as exc:
            log.warning("%s %s failed: %s", method, path, exc)
            raise TransportError(
                f"{method} {path} failed: {exc}",
                details={"exception": type(exc).__name__},
            ) from exc
        return response.status_code, response.content

    async def aclose(self) -> None:
        await self.client.aclose()
