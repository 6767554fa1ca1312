import pytest
from fastapi import FastAPI, Query
from fastapi.testclient import TestClient
from gamehost.domain.errors import (
    BookingsDisabledError,
    CapacityError,
    ErrorCode,
    InvalidTransitionError,
    StoreError,
    TooEarlyError,
)
from gamehost.routers.errors import BookingHTTPException, register_exception_handlers


def _make_app() -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/items")
    async def items(count: int = Query(..., ge=1)) -> dict[str, int]:
        return {"count": count}

    @app.get("/fail/{kind}")
    async def fail(kind: str) -> None:
        errors = {
            "capacity": CapacityError("This table can accommodate up to 2 guests."),
            "disabled": BookingsDisabledError("Online bookings are currently disabled for this venue."),
            "transition": InvalidTransitionError("Cannot change a completed booking."),
            "early": TooEarlyError("Cannot mark as no-show yet. 5 minute(s) remaining in grace period."),
            "store": StoreError("booking insert failed"),
        }
        raise BookingHTTPException.from_error(errors[kind])

    return TestClient(app)


@pytest.mark.parametrize(
    "kind, status_code, code",
    [
        ("capacity", 409, "CAPACITY"),
        ("disabled", 403, "DISABLED"),
        ("transition", 409, "INVALID_TRANSITION"),
        ("early", 425, "TOO_EARLY"),
        ("store", 500, "UNKNOWN"),
    ],
)
def test_booking_errors_render_discriminated_body(kind: str, status_code: int, code: str) -> None:
    res = _make_app().get(f"/fail/{kind}")

    assert res.status_code == status_code
    body = res.json()
    assert body["success"] is False
    assert body["code"] == code
    assert body["error"]


def test_request_validation_uses_same_shape() -> None:
    res = _make_app().get("/items", params={"count": 0})

    assert res.status_code == 422
    body = res.json()
    assert body["success"] is False
    assert body["code"] == "VALIDATION"
    assert body["error"].startswith("query.count:")


def test_explicit_status_overrides_code_mapping() -> None:
    exc = BookingHTTPException(ErrorCode.UNKNOWN, "failed to write audit log", status_code=503)
    assert exc.status_code == 503
    assert exc.body() == {"success": False, "error": "failed to write audit log", "code": "UNKNOWN"}
