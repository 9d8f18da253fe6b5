"""Tests for the code retrieval and deletion endpoints."""

from unittest.mock import AsyncMock

import pytest
from app.core.exceptions import StorageError


@pytest.mark.integration
class TestRetrieveCode:
    def test_requires_identity(self, test_client, code_store):
        code_store.get = AsyncMock(return_value="ABCDEFGH")

        response = test_client.get("/api/retrieve-code")

        assert response.status_code == 401
        assert response.json()["status"] == "error"
        assert response.json()["message"] == "User not authenticated"
        code_store.get.assert_not_awaited()

    def test_blank_identity_is_unauthenticated(self, test_client):
        response = test_client.get("/api/retrieve-code", headers={"X-User-Id": "  "})

        assert response.status_code == 401

    def test_unavailable_without_code(self, test_client, user_headers):
        response = test_client.get("/api/retrieve-code", headers=user_headers())

        assert response.status_code == 200
        assert response.json() == {"status": "Unavailable", "code": None}

    def test_available_with_code(self, test_client, code_store, user_headers):
        test_client.portal.call(code_store.set, "t2_alice", "ABCDEFGH")

        response = test_client.get("/api/retrieve-code", headers=user_headers())

        assert response.status_code == 200
        assert response.json() == {"status": "Available", "code": "ABCDEFGH"}

    def test_only_returns_callers_code(self, test_client, code_store, user_headers):
        test_client.portal.call(code_store.set, "t2_bob", "BBBBBBBB")

        response = test_client.get("/api/retrieve-code", headers=user_headers())

        assert response.json()["status"] == "Unavailable"

    def test_store_failure_returns_500(self, test_client, code_store, user_headers):
        code_store.get = AsyncMock(side_effect=StorageError("disk I/O error", "read"))

        response = test_client.get("/api/retrieve-code", headers=user_headers())

        assert response.status_code == 500
        assert response.json()["status"] == "error"
        assert response.json()["message"] == "Failed to retrieve code"

    def test_responses_are_not_cached(self, test_client, user_headers):
        response = test_client.get("/api/retrieve-code", headers=user_headers())

        assert "no-store" in response.headers["cache-control"]


@pytest.mark.integration
class TestDeleteCode:
    def test_requires_identity(self, test_client, code_store):
        code_store.delete = AsyncMock()

        response = test_client.post("/api/delete-code")

        assert response.status_code == 401
        code_store.delete.assert_not_awaited()

    def test_deletes_existing_code(self, test_client, code_store, user_headers):
        test_client.portal.call(code_store.set, "t2_alice", "ABCDEFGH")

        response = test_client.post("/api/delete-code", headers=user_headers())

        assert response.status_code == 200
        assert response.json() == {
            "status": "success",
            "message": "Code deleted successfully",
        }
        assert test_client.portal.call(code_store.get, "t2_alice") is None

    def test_delete_without_code_succeeds(self, test_client, user_headers):
        response = test_client.post("/api/delete-code", headers=user_headers())

        assert response.status_code == 200
        assert response.json()["status"] == "success"

    def test_store_failure_returns_500(self, test_client, code_store, user_headers):
        code_store.delete = AsyncMock(side_effect=StorageError("readonly", "delete"))

        response = test_client.post("/api/delete-code", headers=user_headers())

        assert response.status_code == 500
        assert response.json()["message"] == "Failed to delete code"


@pytest.mark.integration
def test_trigger_retrieve_delete_cycle(test_client, user_headers, comment_event):
    """A trigger makes the code available; deletion makes it unavailable again."""
    test_client.post("/internal/on-comment-create", json=comment_event())

    first = test_client.get("/api/retrieve-code", headers=user_headers()).json()
    assert first["status"] == "Available"
    assert len(first["code"]) == 8

    test_client.post("/internal/on-comment-create", json=comment_event())
    again = test_client.get("/api/retrieve-code", headers=user_headers()).json()
    assert again["code"] == first["code"]

    test_client.post("/api/delete-code", headers=user_headers())
    after_delete = test_client.get("/api/retrieve-code", headers=user_headers()).json()
    assert after_delete == {"status": "Unavailable", "code": None}

    test_client.post("/internal/on-comment-create", json=comment_event())
    reissued = test_client.get("/api/retrieve-code", headers=user_headers()).json()
    assert reissued["status"] == "Available"
