"""Tests for the user lookup endpoints."""

BASE = "/api/v1/users"
UNKNOWN_ID = "550e8400-e29b-41d4-a716-446655440000"


class TestGetUser:
    def test_get_by_id(self, client, register_student):
        user = register_student()

        response = client.get(f"{BASE}/{user['id']}")

        assert response.status_code == 200
        assert response.get_json()["email"] == user["email"]

    def test_unknown_id(self, client):
        response = client.get(f"{BASE}/{UNKNOWN_ID}")

        assert response.status_code == 404
        assert response.get_json()["error"]["kind"] == "NOT_FOUND"

    def test_get_by_email(self, client, register_student):
        user = register_student()

        response = client.get(f"{BASE}/by-email?email=ANN@example.com")

        assert response.status_code == 200
        assert response.get_json()["id"] == user["id"]

    def test_by_email_requires_parameter(self, client):
        response = client.get(f"{BASE}/by-email")

        assert response.status_code == 400
        assert response.get_json()["error"]["kind"] == "VALIDATION_ERROR"

    def test_by_email_unknown(self, client):
        assert client.get(f"{BASE}/by-email?email=nobody@example.com").status_code == 404


class TestPublicBatch:
    """Tests for POST /api/v1/users/batch/public."""

    def test_only_active_verified_users(self, client, register_student, verified_student):
        unverified = register_student(email="bob@example.com", nic="nic-bob")

        response = client.post(f"{BASE}/batch/public", json={
            "user_ids": [verified_student["id"], unverified["id"], UNKNOWN_ID]
        })

        assert response.status_code == 200
        data = response.get_json()
        assert data == [{
            "id": verified_student["id"],
            "full_name": verified_student["full_name"],
            "whatsapp_number": verified_student["whatsapp_number"],
            "email": verified_student["email"],
            "code_number": verified_student["code_number"],
        }]

    def test_empty_list_rejected(self, client):
        response = client.post(f"{BASE}/batch/public", json={"user_ids": []})
        assert response.status_code == 400

    def test_invalid_id_rejected(self, client):
        response = client.post(f"{BASE}/batch/public", json={"user_ids": ["not-a-uuid"]})

        assert response.status_code == 400
        assert response.get_json()["error"]["kind"] == "VALIDATION_ERROR"
