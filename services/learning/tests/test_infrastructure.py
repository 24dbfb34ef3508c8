import pytest
from starlette.requests import Request

from app.rate_limit import limiter
from shared.database.engine import ssl_connect_args
from shared.middleware import resolve_client_ip


def _request(headers: dict[str, str], client: tuple[str, int] | None = ("10.0.0.9", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": client,
    }
    return Request(scope)


def test_client_ip_prefers_forwarded_for() -> None:
    request = _request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1", "X-Real-IP": "198.51.100.2"})
    assert resolve_client_ip(request) == "203.0.113.7"


def test_client_ip_falls_back_to_real_ip_then_peer() -> None:
    assert resolve_client_ip(_request({"X-Real-IP": "198.51.100.2"})) == "198.51.100.2"
    assert resolve_client_ip(_request({})) == "10.0.0.9"
    assert resolve_client_ip(_request({}, client=None)) is None


def test_rate_limit_key_ignores_forwarded_headers() -> None:
    request = _request({"X-Forwarded-For": "203.0.113.7", "X-Real-IP": "198.51.100.2"})
    assert limiter._key_func(request) == "10.0.0.9"


def test_ssl_disabled_by_default() -> None:
    assert ssl_connect_args(mode="", cert_path="") == {}
    assert ssl_connect_args(mode="disable", cert_path="") == {}


def test_ssl_require_without_verification() -> None:
    assert ssl_connect_args(mode="require", cert_path="") == {"ssl": "require"}


def test_ssl_verify_full_needs_ca_bundle(tmp_path) -> None:
    with pytest.raises(RuntimeError):
        ssl_connect_args(mode="verify-full", cert_path=str(tmp_path / "missing.pem"))


@pytest.mark.asyncio
async def test_request_id_round_trips(async_client) -> None:
    response = await async_client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"

    generated = await async_client.get("/health")
    assert generated.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_rotating_forwarded_for_does_not_reset_rate_limit(
    async_client, auth_headers, make_user, make_course,
) -> None:
    user = await make_user()
    course, _ = await make_course()
    headers = auth_headers(user.user_id)
    limiter.reset()
    limiter.enabled = True

    statuses = []
    for i in range(12):
        response = await async_client.post(
            "/api/v1/enrollments",
            json={"course_id": str(course.course_id)},
            headers={**headers, "X-Forwarded-For": f"198.51.100.{i}"},
        )
        statuses.append(response.status_code)

    assert statuses[0] == 201
    assert statuses[10:] == [429, 429]
