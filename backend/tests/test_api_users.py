"""
TallyHub Backend — User API Tests
===================================

What:  /api/users endpoints through the full middleware stack.

What we test:
    ✅ Create: 201 envelope, camelCase fields, no password in any response
    ✅ Validation failures: joined messages, unknown fields, malformed JSON
    ✅ Duplicate emails (case-insensitive) → 409
    ✅ Get / exists / search / update / delete, including 400 and 404 paths
    ✅ Listing with pagination parameters
"""

import uuid

import pytest


async def _create(client, **overrides):
    payload = {"name": "Maria Silva", "email": "maria@example.com", "password": "Secret123"}
    payload.update(overrides)
    response = await client.post("/api/users", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestCreateUser:

    @pytest.mark.asyncio
    async def test_create_returns_201(self, test_client, user_payload):
        response = await test_client.post("/api/users", json=user_payload)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "User created successfully"
        data = body["data"]
        assert set(data) == {"id", "name", "email", "createdAt", "updatedAt"}
        assert data["email"] == "maria@example.com"
        assert uuid.UUID(data["id"])
        assert "Secret123" not in response.text

    @pytest.mark.asyncio
    async def test_invalid_payload_reports_every_rule(self, test_client):
        response = await test_client.post(
            "/api/users",
            json={"name": "John123", "email": "maria@example.com", "password": "alllowercase1"},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Invalid data"
        assert body["error"] == (
            "Name must contain only letters and spaces, "
            "Password must contain at least one uppercase letter, one lowercase letter and one number"
        )

    @pytest.mark.asyncio
    async def test_accented_name_accepted(self, test_client):
        data = await _create(test_client, name="José Álvares", email="jose@example.com")
        assert data["name"] == "José Álvares"

    @pytest.mark.asyncio
    async def test_duplicate_email_conflicts(self, test_client):
        await _create(test_client)

        response = await test_client.post(
            "/api/users",
            json={"name": "Other Person", "email": "MARIA@Example.com", "password": "Secret123"},
        )

        assert response.status_code == 409
        assert response.json()["message"] == "Email already in use"

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, test_client, user_payload):
        user_payload["role"] = "admin"

        response = await test_client.post("/api/users", json=user_payload)

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid data"

    @pytest.mark.asyncio
    async def test_malformed_json(self, test_client):
        response = await test_client.post(
            "/api/users",
            content=b'{"name": "Maria",',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid JSON in request body"


class TestReadUsers:

    @pytest.mark.asyncio
    async def test_get_by_id(self, test_client):
        created = await _create(test_client)

        response = await test_client.get(f"/api/users/{created['id']}")

        assert response.status_code == 200
        assert response.json()["message"] == "User retrieved successfully"
        assert response.json()["data"] == created

    @pytest.mark.asyncio
    async def test_get_malformed_id(self, test_client):
        response = await test_client.get("/api/users/not-a-uuid")

        assert response.status_code == 400
        assert response.json()["message"] == "Parameter id must be a valid UUID"

    @pytest.mark.asyncio
    async def test_get_unknown_id(self, test_client):
        response = await test_client.get(f"/api/users/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["message"] == "User not found"

    @pytest.mark.asyncio
    async def test_exists(self, test_client):
        created = await _create(test_client)
        unknown = str(uuid.uuid4())

        found = (await test_client.get(f"/api/users/{created['id']}/exists")).json()
        missing = (await test_client.get(f"/api/users/{unknown}/exists")).json()

        assert found["data"] == {"exists": True, "userId": created["id"]}
        assert found["message"] == "User exists"
        assert missing["data"] == {"exists": False, "userId": unknown}
        assert missing["message"] == "User not found"

    @pytest.mark.asyncio
    async def test_search_by_email(self, test_client):
        created = await _create(test_client)

        response = await test_client.get("/api/users/search/email", params={"email": "MARIA@example.com"})

        assert response.status_code == 200
        assert response.json()["message"] == "User found"
        assert response.json()["data"]["id"] == created["id"]

    @pytest.mark.asyncio
    async def test_search_requires_email(self, test_client):
        response = await test_client.get("/api/users/search/email")

        assert response.status_code == 400
        assert response.json()["message"] == "Email is required"

    @pytest.mark.asyncio
    async def test_search_unknown_email(self, test_client):
        response = await test_client.get("/api/users/search/email", params={"email": "nobody@example.com"})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_statistics(self, test_client):
        await _create(test_client)

        response = await test_client.get("/api/users/statistics")

        assert response.status_code == 200
        assert response.json()["data"] == {
            "totalUsers": 1,
            "usersToday": 1,
            "usersThisWeek": 1,
            "usersThisMonth": 1,
        }


class TestListUsers:

    @pytest.mark.asyncio
    async def test_list_with_pagination(self, test_client):
        for i in range(3):
            await _create(test_client, email=f"user{i}@example.com")

        response = await test_client.get("/api/users", params={"page": "2", "limit": "2"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data["users"]) == 1
        assert data["pagination"] == {
            "page": 2,
            "limit": 2,
            "total": 3,
            "pages": 2,
            "hasNext": False,
            "hasPrev": True,
        }

    @pytest.mark.asyncio
    async def test_default_pagination(self, test_client):
        response = await test_client.get("/api/users")

        pagination = response.json()["data"]["pagination"]
        assert pagination["page"] == 1
        assert pagination["limit"] == 10
        assert pagination["pages"] == 0

    @pytest.mark.asyncio
    async def test_fractional_page_uses_integer_part(self, test_client):
        for i in range(3):
            await _create(test_client, email=f"user{i}@example.com")

        response = await test_client.get("/api/users", params={"page": "2.5", "limit": "2"})

        assert response.status_code == 200
        assert response.json()["data"]["pagination"]["page"] == 2
        assert len(response.json()["data"]["users"]) == 1

    @pytest.mark.asyncio
    async def test_huge_page_is_an_empty_page(self, test_client):
        await _create(test_client)

        response = await test_client.get("/api/users", params={"page": "99999999999999999999"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["users"] == []
        assert data["pagination"]["total"] == 1
        assert data["pagination"]["hasNext"] is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "params, message",
        [
            ({"page": "0"}, "Parameter page must be a positive integer"),
            ({"page": "abc"}, "Parameter page must be a positive integer"),
            ({"limit": "101"}, "Parameter limit must be a number between 1 and 100"),
        ],
    )
    async def test_invalid_pagination(self, test_client, params, message):
        response = await test_client.get("/api/users", params=params)

        assert response.status_code == 400
        assert response.json()["message"] == message


class TestUpdateAndDelete:

    @pytest.mark.asyncio
    async def test_update_name(self, test_client):
        created = await _create(test_client)

        response = await test_client.put(f"/api/users/{created['id']}", json={"name": "Maria Souza"})

        assert response.status_code == 200
        assert response.json()["message"] == "User updated successfully"
        data = response.json()["data"]
        assert data["name"] == "Maria Souza"
        assert data["email"] == created["email"]
        assert data["createdAt"] == created["createdAt"]

    @pytest.mark.asyncio
    async def test_update_rejects_password(self, test_client):
        created = await _create(test_client)

        response = await test_client.put(f"/api/users/{created['id']}", json={"password": "NewSecret1"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_update_invalid_email(self, test_client):
        created = await _create(test_client)

        response = await test_client.put(f"/api/users/{created['id']}", json={"email": "nope"})

        assert response.status_code == 400
        assert response.json()["error"] == "Email must be a valid address"

    @pytest.mark.asyncio
    async def test_update_email_conflict(self, test_client):
        await _create(test_client, email="first@example.com")
        second = await _create(test_client, name="Second User", email="second@example.com")

        response = await test_client.put(f"/api/users/{second['id']}", json={"email": "first@example.com"})

        assert response.status_code == 409
        assert response.json()["message"] == "Email already in use by another user"

    @pytest.mark.asyncio
    async def test_empty_update_returns_current_record(self, test_client):
        created = await _create(test_client)

        response = await test_client.put(f"/api/users/{created['id']}", json={})

        assert response.status_code == 200
        assert response.json()["data"] == created

    @pytest.mark.asyncio
    async def test_update_unknown_user(self, test_client):
        response = await test_client.put(f"/api/users/{uuid.uuid4()}", json={"name": "Nobody Here"})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete(self, test_client):
        created = await _create(test_client)

        response = await test_client.delete(f"/api/users/{created['id']}")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "User deleted successfully"
        assert "data" not in body
        assert (await test_client.get(f"/api/users/{created['id']}")).status_code == 404

    @pytest.mark.asyncio
    async def test_delete_unknown_user(self, test_client):
        response = await test_client.delete(f"/api/users/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["message"] == "User not found"
