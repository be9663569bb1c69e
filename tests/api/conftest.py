"""Shared fixtures for API tests.

``app`` is a fresh application without its lifespan having run; tests wire
services by overriding the routers' ``_get_*`` dependency stubs. ``client``
talks to it in-process through ``httpx.ASGITransport``.
"""

from __future__ import annotations

import httpx
import pytest
from fastapi import FastAPI

from logos.api.app import create_app


@pytest.fixture
def app() -> FastAPI:
    app = create_app(cors_origins=["*"])
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(app: FastAPI):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client
