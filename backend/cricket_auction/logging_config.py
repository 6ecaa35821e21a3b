"""Structured logging for the auction service (structlog over stdlib logging).

Every line carries ``service`` and ``env``. Lines written while a command is
running also carry the command's ``tournament_id`` and ``command`` (see
``auction_context``), including lines from stdlib loggers in the engine,
store and fan-out layers. Rupee amounts (``price``, ``current_bid``, ...)
get a readable ``*_display`` companion such as ``₹2.50 Cr``.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from cricket_auction.utils.currency import format_amount

SERVICE_NAME = "cricket-auction"

AMOUNT_FIELDS = ("price", "bid", "current_bid", "purse_remaining")

_NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.INFO,
    "sqlalchemy.engine": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "httpx": logging.WARNING,
}


def _add_service(app_env: str) -> Processor:
    def processor(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("env", app_env)
        return event_dict

    return processor


def render_amounts(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Add ``<field>_display`` next to integer rupee amounts."""
    for field in AMOUNT_FIELDS:
        value = event_dict.get(field)
        if isinstance(value, int) and not isinstance(value, bool):
            event_dict[f"{field}_display"] = format_amount(value)
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    app_env: str = "development",
) -> None:
    """Route structlog and stdlib loggers through one renderer.

    Production always logs JSON; other environments get the console renderer
    unless ``json_logs`` is set.
    """
    use_json = json_logs or app_env == "production"

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_service(app_env),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        render_amounts,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if use_json:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        shared_processors.append(structlog.dev.set_exc_info)
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper()))

    for name, level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Structured logger; keyword arguments become fields.

    Usage:
        logger = get_logger(__name__)
        logger.info("player_sold", player_id="p-1", price=25000000)
    """
    return structlog.get_logger(name)


def bind_request(trace_id: str) -> None:
    """Start a fresh log context for one HTTP request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(trace_id=trace_id)


@contextmanager
def auction_context(tournament_id: str, command: str, **extra: Any) -> Iterator[None]:
    """Tag every log line in the block with the tournament and command.

    Usage:
        with auction_context(tournament_id, "sell", player_id=player_id):
            ...
    """
    with structlog.contextvars.bound_contextvars(
        tournament_id=tournament_id, command=command, **extra
    ):
        yield
