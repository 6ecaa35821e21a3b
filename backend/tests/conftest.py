"""Shared test fixtures.

Settings are required at import time (``cricket_auction.main`` builds the
default app on import), so test environment variables are set before any
project module is imported.
"""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-testing-only-0123456789")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402

from cricket_auction.auction.models import (  # noqa: E402
    OVERSEAS,
    Player,
    Pool,
    Team,
    Tournament,
)
from cricket_auction.auction.store import InMemoryAuctionStore  # noqa: E402
from cricket_auction.config import Settings  # noqa: E402
from cricket_auction.utils.currency import CRORE, LAKH  # noqa: E402
from cricket_auction.utils.security import (  # noqa: E402
    ADMIN_ROLE,
    Principal,
    create_access_token,
)

TOURNAMENT_ID = "t-ipl"
ADMIN_USER_ID = "admin-1"


# =============================================================================
# Settings / Identity
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Test settings: in-memory store, no Redis."""
    return Settings(
        app_env="test",
        app_debug=False,
        database_url=None,
        redis_url=None,
        jwt_secret_key="test-secret-key-for-testing-only-0123456789",
    )


@pytest.fixture
def admin_principal() -> Principal:
    return Principal(user_id=ADMIN_USER_ID, role=ADMIN_ROLE)


@pytest.fixture
def viewer_principal() -> Principal:
    return Principal(user_id="viewer-1", role="user")


@pytest.fixture
def admin_token(settings: Settings) -> str:
    return create_access_token(ADMIN_USER_ID, role=ADMIN_ROLE, settings=settings)


@pytest.fixture
def viewer_token(settings: Settings) -> str:
    return create_access_token("viewer-1", role="user", settings=settings)


@pytest.fixture
def expired_admin_token(settings: Settings) -> str:
    return create_access_token(
        ADMIN_USER_ID,
        role=ADMIN_ROLE,
        expires_delta=timedelta(minutes=-5),
        settings=settings,
    )


# =============================================================================
# Seed Data
# =============================================================================


def make_player(
    player_id: str,
    name: str | None = None,
    base_price: int = 20 * LAKH,
    nationality: str = "Indian",
    role: str = "Batter",
) -> Player:
    return Player(
        player_id=player_id,
        name=name or player_id.upper(),
        role=role,
        nationality=nationality,
        base_price=base_price,
    )


def seed_store(
    store: InMemoryAuctionStore,
    tournament_id: str = TOURNAMENT_ID,
    admin_id: str | None = ADMIN_USER_ID,
    max_squad_size: int | None = 18,
    max_overseas_players: int | None = 6,
) -> InMemoryAuctionStore:
    """Tournament with two teams and three pools.

    - "Marquee": A, B, C (C is overseas)
    - "Uncapped": U1
    - "Empty": no players
    """
    store.add_tournament(
        Tournament(
            tournament_id=tournament_id,
            title="Premier League Auction",
            admin_id=admin_id,
            max_squad_size=max_squad_size,
            max_overseas_players=max_overseas_players,
        )
    )
    store.add_team(tournament_id, Team("team-x", "Team X", purse_remaining=10 * CRORE))
    store.add_team(tournament_id, Team("team-y", "Team Y", purse_remaining=50 * LAKH))

    store.add_pool(
        tournament_id,
        Pool("pool-marquee", "Marquee", order=1),
        players=[
            make_player("p-a", "A", base_price=2 * CRORE),
            make_player("p-b", "B", base_price=1 * CRORE),
            make_player("p-c", "C", base_price=50 * LAKH, nationality=OVERSEAS),
        ],
    )
    store.add_pool(
        tournament_id,
        Pool("pool-uncapped", "Uncapped", order=2),
        players=[make_player("p-u1", "U1")],
    )
    store.add_pool(tournament_id, Pool("pool-empty", "Empty", order=3))
    return store


@pytest.fixture
def store() -> InMemoryAuctionStore:
    return seed_store(InMemoryAuctionStore())


@pytest.fixture
def seed():
    """``seed(store, **rules)`` for tests that need custom squad rules."""
    return seed_store


@pytest.fixture
def player_factory():
    return make_player
