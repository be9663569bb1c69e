"""Tests for HttpSyncTransport against an httpx.MockTransport remote."""

from __future__ import annotations

import json
import uuid
from datetime import UTC, date, datetime

import httpx
import pytest

from logos.integrations.sync import HttpSyncTransport, SyncSettings

pytestmark = pytest.mark.unit

BASE_URL = "https://pulse.example.test/"


def _transport(handler, mock_pool, api_key="secret"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpSyncTransport(client, BASE_URL, api_key, mock_pool)


class TestCheckConnection:
    async def test_head_on_rest_root_with_auth_headers(self, mock_pool):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200)

        assert await _transport(handler, mock_pool).check_connection() is True
        request = seen[0]
        assert request.method == "HEAD"
        assert str(request.url) == "https://pulse.example.test/rest/v1/"
        assert request.headers["apikey"] == "secret"
        assert request.headers["Authorization"] == "Bearer secret"

    async def test_error_status_is_not_connected(self, mock_pool):
        transport = _transport(lambda request: httpx.Response(503), mock_pool)
        assert await transport.check_connection() is False

    async def test_no_api_key_sends_no_auth(self, mock_pool):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200)

        await _transport(handler, mock_pool, api_key=None).check_connection()
        assert "authorization" not in seen[0].headers


class TestPush:
    async def test_posts_new_activities_as_upserts(self, mock_pool):
        activity_id = uuid.uuid4()
        mock_pool.fetch.return_value = [
            {
                "id": activity_id,
                "type": "Call",
                "title": "Check-in",
                "notes": None,
                "activity_date": date(2025, 2, 1),
                "activity_time": None,
                "client_id": None,
                "project_id": None,
                "status": "Completed",
            }
        ]
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201)

        since = datetime(2025, 1, 1, tzinfo=UTC)
        count = await _transport(handler, mock_pool).push(SyncSettings(), since)

        assert count == 1
        assert mock_pool.fetch.await_args.args[1] == since
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/rest/v1/logos_activities"
        assert request.url.params["on_conflict"] == "logos_id"
        assert request.headers["Prefer"] == "resolution=merge-duplicates"
        body = json.loads(request.content)
        assert body == [
            {
                "type": "Call",
                "title": "Check-in",
                "notes": None,
                "activity_date": "2025-02-01",
                "activity_time": None,
                "client_id": None,
                "project_id": None,
                "status": "Completed",
                "logos_id": str(activity_id),
            }
        ]

    async def test_nothing_new_sends_nothing(self, mock_pool):
        def handler(request):
            raise AssertionError("no request expected")

        assert await _transport(handler, mock_pool).push(SyncSettings(), None) == 0

    async def test_activities_disabled(self, mock_pool):
        settings = SyncSettings(sync_activities=False)
        transport = _transport(lambda request: httpx.Response(201), mock_pool)
        assert await transport.push(settings, None) == 0
        mock_pool.fetch.assert_not_awaited()

    async def test_remote_error_raises(self, mock_pool):
        mock_pool.fetch.return_value = [{"id": 1, "title": "x"}]
        transport = _transport(lambda request: httpx.Response(500), mock_pool)
        with pytest.raises(httpx.HTTPStatusError):
            await transport.push(SyncSettings(), None)


class TestPull:
    @staticmethod
    def _remote(request):
        if request.url.path.endswith("/contacts"):
            return httpx.Response(
                200, json=[{"id": 7, "name": "Hope Foundation", "email": "hi@hope.org"}]
            )
        if request.url.path.endswith("/projects"):
            return httpx.Response(
                200,
                json=[
                    {"id": "p-1", "name": "Capital campaign", "status": "Active"},
                    {"id": "p-2", "name": None},
                ],
            )
        return httpx.Response(404)

    async def test_upserts_clients_and_projects(self, mock_pool):
        count = await _transport(self._remote, mock_pool).pull(SyncSettings())

        assert count == 3
        calls = mock_pool.execute.await_args_list
        assert "INSERT INTO clients" in calls[0].args[0]
        assert calls[0].args[1:] == ("7", "Hope Foundation", "hi@hope.org", None)
        assert "INSERT INTO projects" in calls[1].args[0]
        assert calls[1].args[1:] == ("p-1", "Capital campaign", None, "Active")
        assert calls[2].args[1:] == ("p-2", "", None, None)

    async def test_respects_entity_toggles(self, mock_pool):
        settings = SyncSettings(sync_clients=False)
        count = await _transport(self._remote, mock_pool).pull(settings)
        assert count == 2
        assert all("projects" in call.args[0] for call in mock_pool.execute.await_args_list)

    async def test_non_list_response_raises(self, mock_pool):
        transport = _transport(lambda request: httpx.Response(200, json={"x": 1}), mock_pool)
        with pytest.raises(ValueError, match="Expected a list of contacts"):
            await transport.pull(SyncSettings())
