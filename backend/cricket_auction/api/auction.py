"""Auction admin HTTP API.

Admin-only commands (start pool, sell, mark unsold) plus a read-only
snapshot endpoint for clients that poll instead of subscribing.
"""

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field

from cricket_auction.api.deps import CurrentPrincipal, Services
from cricket_auction.utils.currency import CurrencyUnit, parse_amount

router = APIRouter(prefix="/auction", tags=["Auction"])


# =============================================================================
# Request/Response Models
# =============================================================================


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class StartPoolRequest(_CamelModel):
    tournament_id: str = Field(..., alias="tournamentId", min_length=1)
    pool_id: str = Field(..., alias="poolId", min_length=1)


class PriceInput(BaseModel):
    """Sale price as entered on the admin console, e.g. ``{"value": 2.5, "unit": "Crores"}``."""

    value: int | float | str
    unit: CurrencyUnit | str


class SellRequest(_CamelModel):
    tournament_id: str = Field(..., alias="tournamentId", min_length=1)
    player_id: str = Field(..., alias="playerId", min_length=1)
    team_id: str = Field(..., alias="teamId", min_length=1)
    price: PriceInput


class UnsoldRequest(_CamelModel):
    tournament_id: str = Field(..., alias="tournamentId", min_length=1)
    player_id: str = Field(..., alias="playerId", min_length=1)


class CommandResponse(BaseModel):
    ok: bool = True
    message: str | None = None


# =============================================================================
# Admin Commands
# =============================================================================


@router.post("/start-pool", response_model=CommandResponse, response_model_exclude_none=True)
async def start_pool(
    body: StartPoolRequest,
    principal: CurrentPrincipal,
    services: Services,
) -> CommandResponse:
    """Start the auction for a pool; the first available player goes live."""
    result = await services.gateway.start_pool(
        principal, body.tournament_id, body.pool_id
    )
    return CommandResponse(ok=True, message=result.message)


@router.post("/sell", response_model=CommandResponse, response_model_exclude_none=True)
async def sell_player(
    body: SellRequest,
    principal: CurrentPrincipal,
    services: Services,
) -> CommandResponse:
    """Sell a player to a team and advance to the next player."""
    price = parse_amount(body.price.value, body.price.unit)
    await services.gateway.sell(
        principal, body.tournament_id, body.player_id, body.team_id, price
    )
    return CommandResponse(ok=True)


@router.post("/unsold", response_model=CommandResponse, response_model_exclude_none=True)
async def mark_unsold(
    body: UnsoldRequest,
    principal: CurrentPrincipal,
    services: Services,
) -> CommandResponse:
    """Mark a player unsold and advance to the next player."""
    await services.gateway.mark_unsold(principal, body.tournament_id, body.player_id)
    return CommandResponse(ok=True)


# =============================================================================
# Read-only
# =============================================================================


@router.get("/{tournament_id}/state")
async def get_auction_state(tournament_id: str, services: Services) -> dict[str, Any]:
    """Latest snapshot for a tournament (default Idle snapshot if none yet)."""
    return (await services.gateway.get_state(tournament_id)).to_dict()
