"""Custom exception classes for auction errors.

Provides structured error handling with error codes and user-friendly messages.
Business-rule failures are raised by the store/validation helpers and turned
into failed ``TransitionResult`` values by the engine; the command gateway
re-raises them to the HTTP or WebSocket boundary.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standard error codes for auction errors."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"

    # Lookup errors
    TOURNAMENT_NOT_FOUND = "TOURNAMENT_NOT_FOUND"
    POOL_NOT_FOUND = "POOL_NOT_FOUND"
    PLAYER_NOT_FOUND = "PLAYER_NOT_FOUND"
    TEAM_NOT_FOUND = "TEAM_NOT_FOUND"
    POOL_EXHAUSTED = "POOL_EXHAUSTED"

    # Auction flow errors
    NO_ACTIVE_PLAYER = "NO_ACTIVE_PLAYER"
    PLAYER_NOT_ACTIVE = "PLAYER_NOT_ACTIVE"

    # Business rules
    INSUFFICIENT_PURSE = "INSUFFICIENT_PURSE"
    SQUAD_FULL = "SQUAD_FULL"
    OVERSEAS_LIMIT = "OVERSEAS_LIMIT"

    # Concurrency
    TOURNAMENT_BUSY = "TOURNAMENT_BUSY"


class AuctionError(Exception):
    """Base exception for auction errors.

    Attributes:
        code: Error code for programmatic handling
        message: User-friendly error message
        details: Additional error details
        status_code: HTTP status used at the API boundary
    """

    status_code: int = 400

    def __init__(
        self,
        code: ErrorCode | str,
        message: str,
        details: dict[str, Any] | None = None,
        status_code: int | None = None,
    ):
        self.code = code if isinstance(code, str) else code.value
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "errorCode": self.code,
            "errorMessage": self.message,
            "details": self.details,
        }


class ValidationError(AuctionError):
    """Raised when a command payload is malformed."""

    status_code = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            code=ErrorCode.INVALID_PAYLOAD,
            message=message,
            details=details,
        )


class AuthenticationError(AuctionError):
    """Raised when a token is missing or invalid."""

    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(code=ErrorCode.UNAUTHORIZED, message=message)


class ForbiddenError(AuctionError):
    """Raised when a non-admin invokes an admin command."""

    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(code=ErrorCode.FORBIDDEN, message=message)


# =============================================================================
# Not Found
# =============================================================================


class NotFoundError(AuctionError):
    """Base class for unknown tournament/pool/player/team."""

    status_code = 404


class TournamentNotFoundError(NotFoundError):
    def __init__(self, tournament_id: str):
        super().__init__(
            code=ErrorCode.TOURNAMENT_NOT_FOUND,
            message="Tournament not found",
            details={"tournamentId": tournament_id},
        )


class PoolNotFoundError(NotFoundError):
    def __init__(self, pool_id: str):
        super().__init__(
            code=ErrorCode.POOL_NOT_FOUND,
            message="Pool not found",
            details={"poolId": pool_id},
        )


class PlayerNotFoundError(NotFoundError):
    def __init__(self, player_id: str):
        super().__init__(
            code=ErrorCode.PLAYER_NOT_FOUND,
            message="Player not found",
            details={"playerId": player_id},
        )


class TeamNotFoundError(NotFoundError):
    def __init__(self, team_id: str):
        super().__init__(
            code=ErrorCode.TEAM_NOT_FOUND,
            message="Team not found in this tournament",
            details={"teamId": team_id},
        )


class PoolExhaustedError(NotFoundError):
    """Raised when a pool has no available players left.

    The pool is marked completed before this is reported.
    """

    def __init__(self, pool_name: str):
        super().__init__(
            code=ErrorCode.POOL_EXHAUSTED,
            message=f"No available players in pool: {pool_name}",
            details={"pool": pool_name},
        )


# =============================================================================
# Auction Flow
# =============================================================================


class NoActivePlayerError(AuctionError):
    """Raised when a bid is adjusted while no player is up for bid."""

    status_code = 409

    def __init__(self):
        super().__init__(
            code=ErrorCode.NO_ACTIVE_PLAYER,
            message="No player is currently up for bid",
        )


class PlayerNotActiveError(AuctionError):
    """Raised when a sale/no-sale targets a player that cannot be resolved."""

    status_code = 409

    def __init__(self, player_id: str, reason: str):
        super().__init__(
            code=ErrorCode.PLAYER_NOT_ACTIVE,
            message=reason,
            details={"playerId": player_id},
        )


# =============================================================================
# Business Rules
# =============================================================================


class BusinessRuleError(AuctionError):
    """Base class for rejected sales."""

    status_code = 400


class InsufficientPurseError(BusinessRuleError):
    """Raised when a team cannot afford the sale price."""

    def __init__(self, team_name: str, required: int, available: int):
        super().__init__(
            code=ErrorCode.INSUFFICIENT_PURSE,
            message=f"{team_name} does not have enough purse",
            details={"required": required, "available": available},
        )


class SquadFullError(BusinessRuleError):
    def __init__(self, team_name: str, max_squad_size: int):
        super().__init__(
            code=ErrorCode.SQUAD_FULL,
            message=f"{team_name} squad is full ({max_squad_size} players).",
            details={"maxSquadSize": max_squad_size},
        )


class OverseasLimitError(BusinessRuleError):
    def __init__(self, team_name: str, max_overseas: int):
        super().__init__(
            code=ErrorCode.OVERSEAS_LIMIT,
            message=(
                f"{team_name} has reached the overseas player limit "
                f"({max_overseas})."
            ),
            details={"maxOverseasPlayers": max_overseas},
        )


# =============================================================================
# Concurrency
# =============================================================================


class TournamentBusyError(AuctionError):
    """Raised when another instance holds the tournament lock too long."""

    status_code = 503

    def __init__(self, tournament_id: str):
        super().__init__(
            code=ErrorCode.TOURNAMENT_BUSY,
            message="Another auction command is still running, try again",
            details={"tournamentId": tournament_id},
        )
