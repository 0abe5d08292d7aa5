"""Client wiring: default transport and lifetime management."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from tetrch.config import ClientConfig, load_config
from tetrch.services.client import TetraChannelClient
from tetrch.transport.http import HttpxTransport, create_http_client


def create_client(config: ClientConfig | None = None) -> tuple[TetraChannelClient, HttpxTransport]:
    config = config or load_config()
    transport = HttpxTransport(create_http_client(config))
    return TetraChannelClient(transport, config), transport


@asynccontextmanager
async def open_client(config: ClientConfig | None = None) -> AsyncIterator[TetraChannelClient]:
    client, transport = create_client(config)
    try:
        yield client
    finally:
        await transport.aclose()
