"""FastAPI dependencies for the auction routes."""

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from cricket_auction.services import AuctionServices
from cricket_auction.utils.errors import AuthenticationError
from cricket_auction.utils.security import Principal, TokenError, principal_from_token

security = HTTPBearer(auto_error=False)


def get_services(request: Request) -> AuctionServices:
    """Services built by the application lifespan."""
    return request.app.state.services


async def get_current_principal_optional(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    services: Annotated[AuctionServices, Depends(get_services)],
) -> Principal | None:
    """Principal for the bearer token, or None when no token was sent.

    A token that was sent but fails verification is still rejected.
    """
    if credentials is None:
        return None

    try:
        principal = principal_from_token(credentials.credentials, services.settings)
    except TokenError as e:
        raise AuthenticationError(e.message) from e

    if principal is None:
        raise AuthenticationError("Invalid or malformed token")
    return principal


async def get_current_principal(
    principal: Annotated[Principal | None, Depends(get_current_principal_optional)],
) -> Principal:
    """Principal for the bearer token (required)."""
    if principal is None:
        raise AuthenticationError("Not authenticated")
    return principal


# Type aliases for cleaner annotations
Services = Annotated[AuctionServices, Depends(get_services)]
CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
