from __future__ import annotations

import logging
import secrets
from typing import Awaitable, Callable

# No 0/O or 1/I: codes are read aloud and typed by guests.
CONFIRMATION_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CONFIRMATION_CODE_LENGTH = 6

logger = logging.getLogger(__name__)


def generate_confirmation_code() -> str:
    return "".join(secrets.choice(CONFIRMATION_CODE_ALPHABET) for _ in range(CONFIRMATION_CODE_LENGTH))


async def assign_confirmation_code(
    code_exists: Callable[[str], Awaitable[bool]],
    *,
    attempts: int = 5,
    generate: Callable[[], str] = generate_confirmation_code,
) -> str:
    """
    Pick a code not yet used in the store with up to `attempts` existence
    checks, regenerating after each collision.

    Two concurrent callers can still pick the same unused code; the unique
    constraint on insert is what finally rejects the second one. When every
    check collides a fresh, unchecked candidate is returned.
    """
    code = generate()
    for _ in range(attempts):
        if not await code_exists(code):
            return code
        code = generate()
    logger.warning("confirmation code collisions exhausted %d attempts; using %s", attempts, code)
    return code
