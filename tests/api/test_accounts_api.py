"""Router tests for the chart of accounts endpoints."""

from datetime import date

import pytest
from httpx import AsyncClient


async def _create(client: AsyncClient, code: str, name: str, account_type: str = "ASSET", **extra) -> dict:
    response = await client.post("/accounts", json={"code": code, "name": name, "type": account_type, **extra})
    assert response.status_code == 201, response.text
    return response.json()


class TestAccountEndpoints:
    """Test account API endpoints."""

    @pytest.mark.asyncio
    async def test_create_account(self, client: AsyncClient, entity_id):
        # WHEN creating a root asset account
        response = await client.post("/accounts", json={"code": "1000", "name": "Cash", "type": "ASSET"})

        # THEN it is created with derived fields
        assert response.status_code == 201
        data = response.json()
        assert data["entity_id"] == entity_id
        assert data["normal_balance"] == "DEBIT"
        assert data["path"] == "1000"
        assert data["level"] == 0
        assert data["current_balance"] == "0.00"
        assert data["created_by"] == entity_id

    @pytest.mark.asyncio
    async def test_create_child_account(self, client: AsyncClient):
        parent = await _create(client, "1000", "Assets")
        child = await _create(client, "1100", "Cash", parent_id=parent["id"])

        assert child["path"] == "1000/1100"
        assert child["level"] == 1

        response = await client.get(f"/accounts/{parent['id']}/children")
        assert response.status_code == 200
        assert [c["code"] for c in response.json()] == ["1100"]

    @pytest.mark.asyncio
    async def test_duplicate_code_conflict(self, client: AsyncClient):
        await _create(client, "1000", "Cash")

        response = await client.post("/accounts", json={"code": "1000", "name": "Other", "type": "ASSET"})

        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "DUPLICATE_CODE"
        assert "1000" in body["error"]

    @pytest.mark.asyncio
    async def test_normal_balance_mismatch_rejected(self, client: AsyncClient):
        response = await client.post(
            "/accounts",
            json={"code": "4000", "name": "Revenue", "type": "REVENUE", "normal_balance": "DEBIT"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"code": "1", "name": "Cash", "type": "ASSET"},
            {"code": "10 00", "name": "Cash", "type": "ASSET"},
            {"code": "1000", "name": "Ca", "type": "ASSET"},
            {"code": "1000", "name": "Cash", "type": "EQUITYISH"},
        ],
    )
    async def test_invalid_payload_is_400(self, client: AsyncClient, payload):
        response = await client.post("/accounts", json=payload)

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["error"]

    @pytest.mark.asyncio
    async def test_list_accounts_with_filters(self, client: AsyncClient):
        await _create(client, "1000", "Cash")
        await _create(client, "2000", "Payables", "LIABILITY")
        await _create(client, "1010", "Bank")

        response = await client.get("/accounts", params={"type": "ASSET"})
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [a["code"] for a in data["items"]] == ["1000", "1010"]

        response = await client.get("/accounts", params={"search": "pay"})
        assert [a["code"] for a in response.json()["items"]] == ["2000"]

    @pytest.mark.asyncio
    async def test_list_accounts_include_balance(self, client: AsyncClient):
        await _create(client, "1000", "Cash")

        response = await client.get("/accounts", params={"include_balance": True})

        assert response.json()["items"][0]["balance"] == "0.00"

    @pytest.mark.asyncio
    async def test_get_account_by_code_and_id(self, client: AsyncClient):
        created = await _create(client, "1000", "Cash")

        by_code = await client.get("/accounts/1000")
        by_id = await client.get(f"/accounts/{created['id']}")

        assert by_code.status_code == by_id.status_code == 200
        assert by_code.json()["id"] == by_id.json()["id"] == created["id"]
        assert by_code.json()["balance"] == "0.00"

    @pytest.mark.asyncio
    async def test_get_missing_account_404(self, client: AsyncClient):
        response = await client.get("/accounts/9999")

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_accounts_are_scoped_per_entity(self, client: AsyncClient, anonymous_client: AsyncClient):
        from ledger.security import create_access_token

        await _create(client, "1000", "Cash")
        other_headers = {"Authorization": f"Bearer {create_access_token({'sub': 'someone-else'})}"}

        response = await anonymous_client.get("/accounts/1000", headers=other_headers)
        assert response.status_code == 404

        response = await anonymous_client.get("/accounts", headers=other_headers)
        assert response.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_update_account(self, client: AsyncClient):
        created = await _create(client, "1000", "Cash")

        response = await client.patch(f"/accounts/{created['id']}", json={"name": "Cash on Hand", "code": "1001"})

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Cash on Hand"
        assert data["code"] == "1001"
        assert data["path"] == "1001"

    @pytest.mark.asyncio
    async def test_deactivate_parent_with_active_child(self, client: AsyncClient):
        parent = await _create(client, "1000", "Assets")
        child = await _create(client, "1100", "Cash", parent_id=parent["id"])

        response = await client.post(f"/accounts/{parent['id']}/deactivate")
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "HAS_ACTIVE_CHILDREN"
        assert body["active_children"] == 1

        response = await client.post(f"/accounts/{child['id']}/deactivate")
        assert response.status_code == 200
        assert response.json()["is_active"] is False

    @pytest.mark.asyncio
    async def test_delete_account(self, client: AsyncClient):
        created = await _create(client, "5000", "Temporary")

        response = await client.delete(f"/accounts/{created['id']}")
        assert response.status_code == 204

        response = await client.get(f"/accounts/{created['id']}")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_account_balance_endpoint(self, client: AsyncClient):
        cash = await _create(client, "1000", "Cash")
        sales = await _create(client, "4000", "Sales", "REVENUE")
        today = date.today().isoformat()
        txn = await client.post(
            "/transactions",
            json={
                "description": "Cash sale",
                "transaction_date": today,
                "entries": [
                    {"account_id": cash["id"], "debit_amount": "250.00"},
                    {"account_id": sales["id"], "credit_amount": "250.00"},
                ],
            },
        )
        await client.post(f"/transactions/{txn.json()['id']}/post")

        response = await client.get(f"/accounts/{sales['id']}/balance", params={"as_of_date": today})

        assert response.status_code == 200
        data = response.json()
        assert data["balance"] == "250.00"
        assert data["normal_balance"] == "CREDIT"
        assert data["as_of_date"] == today

    @pytest.mark.asyncio
    async def test_account_stats(self, client: AsyncClient):
        await _create(client, "1000", "Cash")
        await _create(client, "4000", "Sales", "REVENUE")

        response = await client.get("/accounts/stats")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert data["active"] == 2
        assert data["by_type"]["ASSET"] == 1
        assert data["by_type"]["REVENUE"] == 1
