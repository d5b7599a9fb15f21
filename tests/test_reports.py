"""Tests for ReportsClient."""

import asyncio
import json

import httpx
import pytest

from auth import Session
from reports import ReportsClient


@pytest.fixture
def session(kv_store):
    s = Session(kv_store)
    s.save("tok", {"email": "k@x.io"})
    return s


def _client(backend_factory, session, status=200, body=None, seen=None):
    def handler(request):
        if seen is not None:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content) if request.content else None
        return httpx.Response(status, json=body)

    return ReportsClient(backend_factory(handler), session)


def test_my_reports_unwraps_envelope(backend_factory, session):
    client = _client(backend_factory, session, body={"reports": [{"id": 1}], "total": 1})
    assert asyncio.run(client.get_my_reports()) == {"success": True, "reports": [{"id": 1}]}


def test_my_reports_plain_list(backend_factory, session):
    seen = {}
    client = _client(backend_factory, session, body=[{"id": 2}], seen=seen)
    assert asyncio.run(client.get_my_reports())["reports"] == [{"id": 2}]
    assert seen["path"] == "/api/reports/my"
    assert seen["auth"] == "Bearer tok"


def test_report_detail_path(backend_factory, session):
    seen = {}
    client = _client(backend_factory, session, body={"id": 7}, seen=seen)
    result = asyncio.run(client.get_report_detail(7))
    assert result == {"success": True, "report": {"id": 7}}
    assert seen["path"] == "/api/reports/7"


def test_my_rank(backend_factory, session):
    client = _client(backend_factory, session, body={"rank": 3})
    assert asyncio.run(client.get_my_rank()) == {"success": True, "rank_info": {"rank": 3}}


def test_all_ranks_unauthenticated(backend_factory, session):
    seen = {}
    client = _client(backend_factory, session, body=[], seen=seen)
    asyncio.run(client.get_all_ranks())
    assert seen["auth"] is None


def test_shelters_query(backend_factory, session):
    seen = {}
    client = _client(backend_factory, session, body=[{"name": "Gym"}], seen=seen)
    result = asyncio.run(client.get_shelters(37.5, 127.0))
    assert result["shelters"] == [{"name": "Gym"}]
    assert seen["params"] == {"latitude": "37.5", "longitude": "127.0"}


def test_submit_inquiry(backend_factory, session):
    seen = {}
    client = _client(backend_factory, session, 201, {"inquiry": {"id": 1}}, seen)
    result = asyncio.run(client.submit_inquiry("Camera", "Lens is dirty"))
    assert result == {"success": True, "inquiry": {"id": 1}}
    assert seen["body"] == {"title": "Camera", "content": "Lens is dirty"}


def test_server_error(backend_factory, session):
    client = _client(backend_factory, session, 500, {"error": "DB down"})
    assert asyncio.run(client.get_my_inquiries()) == {"success": False, "error": "DB down"}
