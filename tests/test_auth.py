"""Tests for Session persistence and AuthClient account calls."""

import asyncio
import json

import httpx
import pytest

import config
from auth import AuthClient, Session


@pytest.fixture
def session(kv_store):
    return Session(kv_store)


def _json_handler(status=200, body=None, seen=None):
    def handler(request):
        if seen is not None:
            seen["path"] = request.url.path
            seen["method"] = request.method
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content) if request.content else None
        return httpx.Response(status, json=body if body is not None else {})
    return handler


class TestSession:
    def test_empty(self, session):
        assert session.token is None
        assert session.user is None
        assert session.is_authenticated is False

    def test_save_and_clear(self, session):
        session.save("tok", {"email": "a@b.co"})
        assert session.token == "tok"
        assert session.user == {"email": "a@b.co"}
        assert session.is_authenticated is True
        session.clear()
        assert session.token is None
        assert session.user is None

    def test_persists_across_instances(self, kv_store):
        Session(kv_store).save("tok", {"name": "Kim"})
        assert Session(kv_store).user == {"name": "Kim"}

    def test_corrupt_user_reads_as_none(self, session, kv_store):
        kv_store.set_item(config.USER_KEY, "{not json")
        assert session.user is None


class TestLogin:
    def test_success_saves_session(self, backend_factory, session):
        seen = {}
        body = {"access_token": "tok", "user": {"email": "user@example.com"}}
        client = AuthClient(backend_factory(_json_handler(body=body, seen=seen)), session)

        result = asyncio.run(client.login("  User@Example.com ", "pw"))

        assert result["success"] is True
        assert result["token"] == "tok"
        assert seen["path"] == "/api/auth/login"
        assert seen["body"] == {"email": "user@example.com", "password": "pw"}
        assert session.token == "tok"

    def test_invalid_email_skips_request(self, backend_factory, session):
        seen = {}
        client = AuthClient(backend_factory(_json_handler(seen=seen)), session)
        result = asyncio.run(client.login("not-an-email", "pw"))
        assert result["success"] is False
        assert "valid email" in result["error"]
        assert seen == {}

    def test_rejected_credentials(self, backend_factory, session):
        body = {"message": "Invalid credentials"}
        client = AuthClient(backend_factory(_json_handler(401, body)), session)
        result = asyncio.run(client.login("user@example.com", "bad"))
        assert result == {"success": False, "error": "Invalid credentials"}
        assert session.token is None

    def test_missing_token_is_failure(self, backend_factory, session):
        client = AuthClient(backend_factory(_json_handler(body={"user": {}})), session)
        result = asyncio.run(client.login("user@example.com", "pw"))
        assert result["success"] is False
        assert session.is_authenticated is False

    def test_unreachable_names_server(self, backend_factory, session):
        def handler(request):
            raise httpx.ConnectError("refused")

        client = AuthClient(backend_factory(handler), session)
        result = asyncio.run(client.login("user@example.com", "pw"))
        assert result["success"] is False
        assert "http://backend.test" in result["error"]


class TestAccount:
    def test_register_saves_token_when_returned(self, backend_factory, session):
        body = {"access_token": "new", "user": {"name": "Kim"}}
        client = AuthClient(backend_factory(_json_handler(201, body)), session)
        result = asyncio.run(client.register({"email": "k@x.io", "password": "pw"}))
        assert result["success"] is True
        assert session.token == "new"

    def test_profile_sends_bearer_token(self, backend_factory, session):
        session.save("tok", {})
        seen = {}
        client = AuthClient(backend_factory(_json_handler(body={"name": "Kim"}, seen=seen)), session)
        result = asyncio.run(client.get_profile())
        assert result == {"success": True, "profile": {"name": "Kim"}}
        assert seen["auth"] == "Bearer tok"

    def test_update_profile_refreshes_stored_user(self, backend_factory, session):
        session.save("tok", {"name": "Old"})
        seen = {}
        client = AuthClient(backend_factory(_json_handler(body={"name": "New"}, seen=seen)), session)
        asyncio.run(client.update_profile({"name": "New"}))
        assert seen["method"] == "PATCH"
        assert session.user == {"name": "New"}

    def test_deactivate_clears_session(self, backend_factory, session):
        session.save("tok", {})
        client = AuthClient(backend_factory(_json_handler(body={"message": "bye"})), session)
        result = asyncio.run(client.deactivate("pw"))
        assert result["message"] == "bye"
        assert session.token is None

    def test_change_password_error_list_joined(self, backend_factory, session):
        body = {"message": ["new_password too short", "new_password needs a digit"]}
        client = AuthClient(backend_factory(_json_handler(400, body)), session)
        result = asyncio.run(client.change_password("old", "x"))
        assert result["error"] == "new_password too short, new_password needs a digit"

    def test_find_email(self, backend_factory, session):
        seen = {}
        client = AuthClient(backend_factory(_json_handler(body={"email": "k@x.io"}, seen=seen)), session)
        result = asyncio.run(client.find_email("Kim", "010-0000-0000"))
        assert result == {"success": True, "email": "k@x.io"}
        assert seen["auth"] is None

    def test_logout(self, backend_factory, session):
        session.save("tok", {})
        AuthClient(backend_factory(_json_handler()), session).logout()
        assert session.is_authenticated is False
