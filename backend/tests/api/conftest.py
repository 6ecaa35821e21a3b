"""Test fixtures for API tests."""

from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from cricket_auction.auction.store import InMemoryAuctionStore
from cricket_auction.config import Settings
from cricket_auction.main import create_app
from cricket_auction.services import AuctionServices, build_services

TID = "t-ipl"


@pytest.fixture
def services(settings: Settings, store: InMemoryAuctionStore) -> AuctionServices:
    return build_services(settings, store)


@pytest.fixture
def app(settings: Settings, services: AuctionServices) -> FastAPI:
    return create_app(settings, services)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app (no lifespan; services are injected)."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def make_sell_data(
    player_id: str = "p-a",
    team_id: str = "team-x",
    value: Any = 2,
    unit: str = "Crores",
) -> dict[str, Any]:
    return {
        "tournamentId": TID,
        "playerId": player_id,
        "teamId": team_id,
        "price": {"value": value, "unit": unit},
    }
