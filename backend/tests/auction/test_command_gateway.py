"""Tests for AuctionCommandGateway: authorization, ordering and fan-out."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from cricket_auction.auction.commands import AuctionCommandGateway
from cricket_auction.auction.engine import AuctionEngine
from cricket_auction.auction.locks import TournamentLockManager
from cricket_auction.auction.models import AuctionState, PlayerStatus
from cricket_auction.auction.state_table import AuctionStateTable
from cricket_auction.services import build_services
from cricket_auction.utils.currency import CRORE, LAKH
from cricket_auction.utils.errors import (
    AuthenticationError,
    ForbiddenError,
    InsufficientPurseError,
    NoActivePlayerError,
    PlayerNotActiveError,
    PoolExhaustedError,
    TournamentNotFoundError,
    ValidationError,
)
from cricket_auction.utils.security import ADMIN_ROLE, Principal
from cricket_auction.ws.broadcaster import AuctionBroadcaster
from cricket_auction.ws.connection import WebSocketConnection
from cricket_auction.ws.manager import ConnectionManager
from tests.ws.conftest import MockRedis

TID = "t-ipl"


def make_connection(connection_id: str) -> WebSocketConnection:
    websocket = MagicMock()
    websocket.send_json = AsyncMock()
    websocket.close = AsyncMock()
    return WebSocketConnection(
        websocket=websocket,
        connection_id=connection_id,
        connected_at=datetime.now(timezone.utc),
    )


def sent_types(conn: WebSocketConnection) -> list[str]:
    return [c.args[0]["type"] for c in conn.websocket.send_json.call_args_list]


def sent_payloads(conn: WebSocketConnection, event_type: str) -> list[dict]:
    return [
        c.args[0]["payload"]
        for c in conn.websocket.send_json.call_args_list
        if c.args[0]["type"] == event_type
    ]


@pytest.fixture
def state_table() -> AuctionStateTable:
    return AuctionStateTable()


@pytest_asyncio.fixture
async def manager():
    manager = ConnectionManager()
    await manager.start()
    yield manager
    await manager.stop()


@pytest.fixture
def gateway(store, state_table, manager) -> AuctionCommandGateway:
    return AuctionCommandGateway(
        store=store,
        engine=AuctionEngine(store),
        state_table=state_table,
        broadcaster=AuctionBroadcaster(manager, state_table),
        lock_manager=TournamentLockManager(),
    )


@pytest_asyncio.fixture
async def spectator(manager, gateway) -> WebSocketConnection:
    conn = make_connection("spectator-1")
    await manager.connect(conn)
    assert await gateway.join(conn, TID)
    conn.websocket.send_json.reset_mock()
    return conn


class TestAuthorization:
    @pytest.mark.asyncio
    async def test_anonymous_rejected(self, gateway, state_table):
        with pytest.raises(AuthenticationError):
            await gateway.start_pool(None, TID, "pool-marquee")

        assert await state_table.get(TID) == AuctionState.default(TID)

    @pytest.mark.asyncio
    async def test_non_admin_never_changes_state(
        self, gateway, state_table, store, viewer_principal, spectator
    ):
        with pytest.raises(ForbiddenError):
            await gateway.start_pool(viewer_principal, TID, "pool-marquee")
        with pytest.raises(ForbiddenError):
            await gateway.sell(viewer_principal, TID, "p-a", "team-x", 2 * CRORE)
        with pytest.raises(ForbiddenError):
            await gateway.mark_unsold(viewer_principal, TID, "p-a")
        with pytest.raises(ForbiddenError):
            await gateway.update_bid(viewer_principal, TID, increment=LAKH)

        assert await state_table.get(TID) == AuctionState.default(TID)
        assert (await store.get_player(TID, "p-a")).status == PlayerStatus.AVAILABLE
        assert sent_types(spectator) == []

    @pytest.mark.asyncio
    async def test_admin_of_other_tournament_rejected(self, gateway, state_table):
        other_admin = Principal(user_id="admin-2", role=ADMIN_ROLE)

        with pytest.raises(ForbiddenError):
            await gateway.start_pool(other_admin, TID, "pool-marquee")

        assert await state_table.get(TID) == AuctionState.default(TID)

    @pytest.mark.asyncio
    async def test_unknown_tournament(self, gateway, admin_principal):
        with pytest.raises(TournamentNotFoundError):
            await gateway.start_pool(admin_principal, "missing", "pool-marquee")

    @pytest.mark.asyncio
    async def test_missing_ids_rejected(self, gateway, admin_principal):
        with pytest.raises(ValidationError):
            await gateway.start_pool(admin_principal, TID, "")
        with pytest.raises(ValidationError):
            await gateway.sell(admin_principal, TID, "p-a", "", 2 * CRORE)


class TestCommands:
    @pytest.mark.asyncio
    async def test_start_pool_broadcasts(self, gateway, state_table, admin_principal, spectator):
        result = await gateway.start_pool(admin_principal, TID, "pool-marquee")

        assert result.message == "Auction started for pool: Marquee"
        assert (await state_table.get(TID)).current_player.player_id == "p-a"
        assert sent_types(spectator) == [
            "auction_state_update",
            "auction_notification",
            "pools_update",
        ]
        notification = sent_payloads(spectator, "auction_notification")[0]
        assert notification == {"message": "Auction started for pool: Marquee", "type": "success"}

    @pytest.mark.asyncio
    async def test_empty_pool_stores_and_broadcasts_before_error(
        self, gateway, state_table, admin_principal, spectator
    ):
        with pytest.raises(PoolExhaustedError):
            await gateway.start_pool(admin_principal, TID, "pool-empty")

        state = await state_table.get(TID)
        assert state.current_player is None
        assert state.log[-1] == 'Pool "Empty" is already finished.'
        assert sent_types(spectator) == ["auction_state_update", "pools_update"]
        pools = sent_payloads(spectator, "pools_update")[0]
        assert [p["isCompleted"] for p in pools if p["id"] == "pool-empty"] == [True]

    @pytest.mark.asyncio
    async def test_sell_broadcasts_state_and_squads(
        self, gateway, admin_principal, spectator
    ):
        await gateway.start_pool(admin_principal, TID, "pool-marquee")
        spectator.websocket.send_json.reset_mock()

        await gateway.sell(admin_principal, TID, "p-a", "team-x", 2 * CRORE)

        assert sent_types(spectator) == ["auction_state_update", "squad_update"]
        squads = sent_payloads(spectator, "squad_update")[0]
        team_x = next(t for t in squads if t["id"] == "team-x")
        assert [p["id"] for p in team_x["players"]] == ["p-a"]
        assert team_x["purseRemaining"] == 8 * CRORE

    @pytest.mark.asyncio
    async def test_rejected_sale_does_not_broadcast(
        self, gateway, state_table, admin_principal, spectator
    ):
        await gateway.start_pool(admin_principal, TID, "pool-marquee")
        before = await state_table.get(TID)
        spectator.websocket.send_json.reset_mock()

        with pytest.raises(InsufficientPurseError):
            await gateway.sell(admin_principal, TID, "p-a", "team-y", 2 * CRORE)

        assert (await state_table.get(TID)) is before
        assert sent_types(spectator) == []

    @pytest.mark.asyncio
    async def test_unsold_of_last_player_sends_pools(
        self, gateway, admin_principal, spectator
    ):
        await gateway.start_pool(admin_principal, TID, "pool-uncapped")
        spectator.websocket.send_json.reset_mock()

        await gateway.mark_unsold(admin_principal, TID, "p-u1")

        assert sent_types(spectator) == [
            "auction_state_update",
            "auction_notification",
            "pools_update",
        ]
        assert sent_payloads(spectator, "auction_notification")[0]["type"] == "error"

    @pytest.mark.asyncio
    async def test_update_bid(self, gateway, state_table, admin_principal, spectator):
        await gateway.start_pool(admin_principal, TID, "pool-marquee")

        await gateway.update_bid(admin_principal, TID, increment=10 * LAKH)
        await gateway.update_bid(admin_principal, TID, new_bid=1)

        assert (await state_table.get(TID)).current_bid == 2 * CRORE
        bids = [p["currentBid"] for p in sent_payloads(spectator, "auction_state_update")]
        assert bids == [2 * CRORE, 2 * CRORE + 10 * LAKH, 2 * CRORE]

    @pytest.mark.asyncio
    async def test_update_bid_requires_exactly_one_amount(self, gateway, admin_principal):
        with pytest.raises(ValidationError):
            await gateway.update_bid(admin_principal, TID)
        with pytest.raises(ValidationError):
            await gateway.update_bid(admin_principal, TID, new_bid=5, increment=5)

    @pytest.mark.asyncio
    async def test_update_bid_without_active_player(self, gateway, admin_principal):
        with pytest.raises(NoActivePlayerError):
            await gateway.update_bid(admin_principal, TID, increment=LAKH)


class TestOrderingAndCatchUp:
    @pytest.mark.asyncio
    async def test_concurrent_bids_arrive_in_acceptance_order(
        self, gateway, state_table, admin_principal, spectator
    ):
        await gateway.start_pool(admin_principal, TID, "pool-marquee")
        spectator.websocket.send_json.reset_mock()

        await asyncio.gather(
            *(gateway.update_bid(admin_principal, TID, increment=LAKH) for _ in range(10))
        )

        bids = [p["currentBid"] for p in sent_payloads(spectator, "auction_state_update")]
        assert bids == [2 * CRORE + i * LAKH for i in range(1, 11)]
        assert (await state_table.get(TID)).current_bid == bids[-1]

    @pytest.mark.asyncio
    async def test_join_receives_latest_snapshot(
        self, gateway, manager, admin_principal
    ):
        await gateway.start_pool(admin_principal, TID, "pool-marquee")
        await gateway.update_bid(admin_principal, TID, increment=5 * LAKH)

        late = make_connection("late-joiner")
        await manager.connect(late)
        assert await gateway.join(late, TID)

        snapshots = sent_payloads(late, "auction_state_update")
        assert len(snapshots) == 1
        assert snapshots[0]["currentPlayer"]["id"] == "p-a"
        assert snapshots[0]["currentBid"] == 2 * CRORE + 5 * LAKH

        # Subsequent updates reach the late joiner too
        await gateway.update_bid(admin_principal, TID, increment=LAKH)
        assert sent_payloads(late, "auction_state_update")[-1]["currentBid"] == (
            2 * CRORE + 6 * LAKH
        )

    @pytest.mark.asyncio
    async def test_join_before_any_command_gets_default(self, gateway, manager):
        conn = make_connection("early")
        await manager.connect(conn)

        await gateway.join(conn, TID)

        snapshot = sent_payloads(conn, "auction_state_update")[0]
        assert snapshot["currentPool"] == "None"
        assert snapshot["currentPlayer"] is None
        assert snapshot["currentBid"] == 0

    @pytest.mark.asyncio
    async def test_leave_stops_updates(self, gateway, admin_principal, spectator):
        await gateway.leave(spectator, TID)

        await gateway.start_pool(admin_principal, TID, "pool-marquee")

        assert sent_types(spectator) == []


class TestMultiInstance:
    """Two service instances sharing one store and one Redis."""

    @pytest_asyncio.fixture
    async def instances(self, settings, store):
        redis = MockRedis()
        first = build_services(settings, store, redis=redis)
        second = build_services(settings, store, redis=redis)
        yield first, second
        await first.manager.stop()
        await second.manager.stop()

    @pytest.mark.asyncio
    async def test_join_on_other_instance_gets_live_snapshot(
        self, instances, admin_principal
    ):
        first, second = instances
        await first.gateway.start_pool(admin_principal, TID, "pool-marquee")
        await first.gateway.update_bid(admin_principal, TID, increment=10 * LAKH)

        conn = make_connection("joins-second")
        await second.manager.connect(conn)
        assert await second.gateway.join(conn, TID)

        snapshot = sent_payloads(conn, "auction_state_update")[0]
        assert snapshot["currentPlayer"]["id"] == "p-a"
        assert snapshot["currentBid"] == 2 * CRORE + 10 * LAKH
        assert snapshot["currentPool"] == "Marquee"

    @pytest.mark.asyncio
    async def test_commands_continue_from_shared_state(self, instances, admin_principal):
        first, second = instances
        await first.gateway.start_pool(admin_principal, TID, "pool-marquee")

        result = await second.gateway.update_bid(admin_principal, TID, increment=LAKH)

        assert result.state.current_player.player_id == "p-a"
        assert result.state.current_bid == 2 * CRORE + LAKH
        assert (await first.gateway.get_state(TID)).current_bid == 2 * CRORE + LAKH

    @pytest.mark.asyncio
    async def test_concurrent_sales_of_one_player_across_instances(
        self, instances, store, admin_principal
    ):
        first, second = instances
        await first.gateway.start_pool(admin_principal, TID, "pool-marquee")

        outcomes = await asyncio.gather(
            first.gateway.sell(admin_principal, TID, "p-a", "team-x", 2 * CRORE),
            second.gateway.sell(admin_principal, TID, "p-a", "team-x", 2 * CRORE),
            return_exceptions=True,
        )

        accepted = [o for o in outcomes if not isinstance(o, Exception)]
        rejected = [o for o in outcomes if isinstance(o, PlayerNotActiveError)]
        assert len(accepted) == 1
        assert len(rejected) == 1
        team = await store.get_team(TID, "team-x")
        assert team.purse_remaining == 8 * CRORE
        assert team.player_ids == ("p-a",)
        assert (await second.gateway.get_state(TID)).current_player.player_id == "p-b"
