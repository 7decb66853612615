"""Application-level behaviour: health, authentication and error rendering."""

import pytest
from httpx import AsyncClient

from ledger.security import create_access_token, decode_access_token


@pytest.mark.asyncio
async def test_health_endpoint(anonymous_client: AsyncClient) -> None:
    response = await anonymous_client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["checks"]["database"] is True
    assert "timestamp" in data


@pytest.mark.asyncio
async def test_request_id_echoed(client: AsyncClient) -> None:
    response = await client.get("/accounts", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
async def test_missing_token_is_401(anonymous_client: AsyncClient) -> None:
    response = await anonymous_client.get("/accounts")

    assert response.status_code == 401
    assert response.json() == {"error": "Not authenticated", "code": "UNAUTHORIZED"}


@pytest.mark.asyncio
async def test_invalid_token_is_401(anonymous_client: AsyncClient) -> None:
    response = await anonymous_client.get("/accounts", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHORIZED"


@pytest.mark.asyncio
async def test_token_without_subject_is_401(anonymous_client: AsyncClient) -> None:
    token = create_access_token({"scope": "ledger"})

    response = await anonymous_client.get("/accounts", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["error"] == "Token missing subject"


@pytest.mark.asyncio
async def test_unknown_route_uses_error_shape(client: AsyncClient) -> None:
    response = await client.get("/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"error": "Not Found", "code": "HTTP_404"}


@pytest.mark.asyncio
async def test_malformed_uuid_is_400(client: AsyncClient) -> None:
    response = await client.get("/transactions/not-a-uuid")

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert "transaction_id" in body["error"]


def test_access_token_round_trip() -> None:
    token = create_access_token({"sub": "acme"})

    payload = decode_access_token(token)

    assert payload["sub"] == "acme"
    assert "exp" in payload


def test_decode_rejects_garbage() -> None:
    assert decode_access_token("garbage") is None
