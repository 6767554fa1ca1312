from datetime import datetime, timedelta, timezone
from typing import Sequence

import jwt
from jwt import InvalidTokenError

STAFF_ROLE = "staff"


def create_access_token(
    *,
    user_id: int,
    secret: str,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
    role: str = STAFF_ROLE,
) -> str:
    issued = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": role,
        "iat": issued,
        "exp": issued + (expires_delta or timedelta(minutes=30)),
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(
    token: str,
    *,
    secret: str,
    algorithms: Sequence[str],
    required_role: str = STAFF_ROLE,
) -> int:
    """Staff user id carried in `sub`. Raises ValueError for anything unusable."""
    try:
        claims = jwt.decode(token, secret, algorithms=list(algorithms), options={"require": ["sub", "exp"]})
    except InvalidTokenError as exc:
        raise ValueError("invalid token") from exc

    if claims.get("role") != required_role:
        raise ValueError(f"token role is not {required_role}")
    try:
        return int(claims["sub"])
    except (TypeError, ValueError) as exc:
        raise ValueError("token sub is not an integer") from exc
