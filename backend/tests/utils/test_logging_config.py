"""Tests for the structlog processors and log context helpers."""

import structlog

from cricket_auction.logging_config import auction_context, bind_request, render_amounts
from cricket_auction.utils.currency import CRORE, LAKH


class TestRenderAmounts:
    def test_amount_fields_get_display(self):
        event = render_amounts(None, "info", {"event": "player_sold", "price": 2 * CRORE + 50 * LAKH})

        assert event["price"] == 25_000_000
        assert event["price_display"] == "₹2.50 Cr"

    def test_other_fields_untouched(self):
        event = render_amounts(None, "info", {"event": "x", "player_id": "p-1", "bid": True})

        assert event == {"event": "x", "player_id": "p-1", "bid": True}


class TestContext:
    def test_auction_context_is_scoped(self):
        bind_request("trace-1")

        with auction_context("t-ipl", "sell", player_id="p-a"):
            assert structlog.contextvars.get_contextvars() == {
                "trace_id": "trace-1",
                "tournament_id": "t-ipl",
                "command": "sell",
                "player_id": "p-a",
            }

        assert structlog.contextvars.get_contextvars() == {"trace_id": "trace-1"}
        structlog.contextvars.clear_contextvars()

    def test_bind_request_starts_fresh(self):
        structlog.contextvars.bind_contextvars(stale="value")

        bind_request("trace-2")

        assert structlog.contextvars.get_contextvars() == {"trace_id": "trace-2"}
        structlog.contextvars.clear_contextvars()
