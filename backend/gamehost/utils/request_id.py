from __future__ import annotations

import re
import uuid
from contextvars import ContextVar
from typing import Optional

REQUEST_ID_HEADER = "X-Request-ID"

# Incoming ids end up in every audit line, so only short opaque tokens are kept.
_ACCEPTED_ID = re.compile(r"^[A-Za-z0-9._-]{1,128}$")

_current_request_id: ContextVar[Optional[str]] = ContextVar("gamehost_request_id", default=None)


def generate_request_id() -> str:
    return uuid.uuid4().hex


def resolve_request_id(incoming: Optional[str]) -> str:
    """Caller-supplied id when it looks like one, otherwise a fresh id."""
    if incoming and _ACCEPTED_ID.match(incoming):
        return incoming
    return generate_request_id()


def set_request_id(request_id: Optional[str]) -> None:
    _current_request_id.set(request_id)


def get_request_id() -> Optional[str]:
    return _current_request_id.get()
