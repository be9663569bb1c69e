"""Tests for the search ranking and onboarding summary endpoints."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from logos.api.routers.search import _get_summarizer
from logos.integrations.summarizer import SummarizerError

pytestmark = pytest.mark.unit


@pytest.fixture
def summarizer(app):
    summarizer = MagicMock()
    summarizer.configured = True
    summarizer.rank_ids = AsyncMock(return_value=["p1"])
    summarizer.onboarding_packet = AsyncMock(return_value="# Welcome")
    app.dependency_overrides[_get_summarizer] = lambda: summarizer
    return summarizer


async def test_rank_returns_ids(client, summarizer):
    resp = await client.post(
        "/api/search/rank",
        json={
            "query": "campaign",
            "candidates": [{"id": "p1", "kind": "project", "title": "Capital campaign"}],
        },
    )

    assert resp.status_code == 200
    assert resp.json() == {"data": ["p1"], "meta": {"ranked": True}}
    query, candidates = summarizer.rank_ids.await_args.args
    assert query == "campaign"
    assert candidates[0].title == "Capital campaign"


async def test_rank_unconfigured_reports_unranked(client, summarizer):
    summarizer.configured = False
    summarizer.rank_ids.return_value = []
    resp = await client.post("/api/search/rank", json={"query": "x"})
    assert resp.json() == {"data": [], "meta": {"ranked": False}}


async def test_rank_requires_query(client, summarizer):
    resp = await client.post("/api/search/rank", json={"query": ""})
    assert resp.status_code == 400


async def test_onboarding_packet(client, summarizer):
    resp = await client.post(
        "/api/summaries/onboarding", json={"client_name": "Hope Foundation", "notes": ["Gala"]}
    )
    assert resp.status_code == 200
    assert resp.json()["data"] == {"client_name": "Hope Foundation", "content": "# Welcome"}
    summarizer.onboarding_packet.assert_awaited_once_with("Hope Foundation", ["Gala"])


async def test_onboarding_packet_unavailable_is_502(client, summarizer):
    summarizer.onboarding_packet.side_effect = SummarizerError("API key is not configured")
    resp = await client.post("/api/summaries/onboarding", json={"client_name": "Hope"})
    assert resp.status_code == 502
    assert resp.json()["error"]["code"] == "SUMMARIZER_UNAVAILABLE"
