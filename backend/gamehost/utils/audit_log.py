"""
One JSON line per booking state change on the `audit` logger.

The audit logger has its own stdout handler and does not propagate, so
`configure_logging` can change the application log format without touching
audit output.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from .request_id import get_request_id

AuditAction = Literal[
    "booking.created",
    "booking.rolled_back",
    "booking.confirmed",
    "booking.cancelled",
    "booking.arrived",
    "booking.no_show",
    "booking.seated",
    "booking.completed",
]
AuditInitiator = Literal["guest", "staff", "system"]

AUDIT_LOGGER_NAME = "audit"

audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
audit_logger.setLevel(logging.INFO)
audit_logger.propagate = False
if not audit_logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(_handler)


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def build_audit_record(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    booking_id: int,
    venue_id: Optional[int],
    table_id: Optional[int],
    user_id: Optional[int],
    party_size: Optional[int],
    status_from: Optional[str],
    status_to: Optional[str],
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    record: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "initiator": initiator,
        "request_id": get_request_id(),
        "booking_id": booking_id,
        "venue_id": venue_id,
        "table_id": table_id,
        "user_id": user_id,
        "party_size": party_size,
        "status_from": _plain(status_from),
        "status_to": _plain(status_to),
        "message": message,
    }
    for key, value in (extra or {}).items():
        record[key] = _plain(value)
    return {k: v for k, v in record.items() if v is not None}


def emit_audit_log(**fields: Any) -> None:
    """Write one audit line. Raises RuntimeError if the line cannot be written."""
    record = build_audit_record(**fields)
    try:
        audit_logger.info(json.dumps(record, ensure_ascii=True, default=str))
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
