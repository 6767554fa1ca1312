from datetime import timedelta
from typing import Iterator

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from gamehost.config import get_settings
from gamehost.deps import get_current_user_id
from gamehost.routers.errors import register_exception_handlers
from gamehost.utils.auth import create_access_token


def _make_app() -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/protected")
    async def protected(user_id: int = Depends(get_current_user_id)) -> dict[str, int]:
        return {"user_id": user_id}

    return TestClient(app)


def _token(secret: str, *, expired: bool = False) -> str:
    delta = timedelta(seconds=-1) if expired else timedelta(minutes=30)
    return create_access_token(user_id=123, secret=secret, expires_delta=delta)


@pytest.fixture(autouse=True)
def _auth_secret(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("AUTH_SECRET", "testsecret")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_protected_accepts_valid_token() -> None:
    client = _make_app()
    res = client.get("/protected", headers={"Authorization": f"Bearer {_token('testsecret')}"})
    assert res.status_code == 200
    assert res.json()["user_id"] == 123


def test_protected_rejects_missing_header() -> None:
    client = _make_app()
    res = client.get("/protected")
    assert res.status_code == 401
    assert res.headers.get("www-authenticate", "").lower().startswith("bearer")
    assert res.json() == {"success": False, "error": "Bearer token required", "code": "UNAUTHORIZED"}


def test_protected_rejects_invalid_token() -> None:
    client = _make_app()
    res = client.get("/protected", headers={"Authorization": "Bearer invalid"})
    assert res.status_code == 401
    assert res.json()["code"] == "UNAUTHORIZED"


def test_protected_rejects_expired_token() -> None:
    client = _make_app()
    token = _token("testsecret", expired=True)
    res = client.get("/protected", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401


def test_protected_rejects_token_signed_with_another_secret() -> None:
    client = _make_app()
    res = client.get("/protected", headers={"Authorization": f"Bearer {_token('other')}"})
    assert res.status_code == 401
