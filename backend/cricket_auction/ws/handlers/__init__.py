"""WebSocket event handlers."""

from cricket_auction.ws.handlers.base import BaseHandler
from cricket_auction.ws.handlers.system import SystemHandler
from cricket_auction.ws.handlers.auction import AuctionHandler

__all__ = [
    "BaseHandler",
    "SystemHandler",
    "AuctionHandler",
]
