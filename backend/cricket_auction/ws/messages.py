"""Message envelope schemas."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from cricket_auction.utils.errors import AuctionError
from cricket_auction.ws.events import EventType


def _now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


@dataclass(frozen=True)
class MessageEnvelope:
    """Standard message envelope.

    Wire form: ``{"type", "ts", "traceId", "payload", "version", "requestId"?}``.
    """

    type: EventType
    ts: int  # Unix timestamp in milliseconds
    trace_id: str
    payload: Any
    version: str = "v1"
    request_id: str | None = None

    @classmethod
    def create(
        cls,
        event_type: EventType,
        payload: Any,
        request_id: str | None = None,
        trace_id: str | None = None,
    ) -> MessageEnvelope:
        """Factory method to create a new message envelope."""
        return cls(
            type=event_type,
            ts=_now_ms(),
            trace_id=trace_id or str(uuid.uuid4()),
            payload=payload,
            request_id=request_id,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MessageEnvelope:
        """Parse incoming message to MessageEnvelope.

        Raises:
            ValueError: unknown ``type`` or malformed envelope
        """
        if not isinstance(data, dict) or "type" not in data:
            raise ValueError("Message must be an object with a 'type' field")

        payload = data.get("payload", {})
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise ValueError("Message payload must be an object")

        return cls(
            type=EventType(data["type"]),
            ts=data.get("ts", _now_ms()),
            trace_id=data.get("traceId", str(uuid.uuid4())),
            payload=payload,
            version=data.get("version", "v1"),
            request_id=data.get("requestId"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        result = {
            "type": self.type.value,
            "ts": self.ts,
            "traceId": self.trace_id,
            "payload": self.payload,
            "version": self.version,
        }
        if self.request_id:
            result["requestId"] = self.request_id
        return result


@dataclass
class ErrorPayload:
    """Error response payload."""

    error_code: str
    error_message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "errorCode": self.error_code,
            "errorMessage": self.error_message,
            "details": self.details,
        }


def create_error_message(
    error_code: str,
    error_message: str,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
    trace_id: str | None = None,
) -> MessageEnvelope:
    """Helper to create an ERROR message envelope."""
    return MessageEnvelope.create(
        event_type=EventType.ERROR,
        payload=ErrorPayload(
            error_code=error_code,
            error_message=error_message,
            details=details or {},
        ).to_dict(),
        request_id=request_id,
        trace_id=trace_id,
    )


def error_message_from(
    error: AuctionError,
    request_id: str | None = None,
    trace_id: str | None = None,
) -> MessageEnvelope:
    """ERROR envelope for an AuctionError."""
    return create_error_message(
        error_code=error.code,
        error_message=error.message,
        details=error.details,
        request_id=request_id,
        trace_id=trace_id,
    )
