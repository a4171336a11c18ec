from __future__ import annotations

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from app.api.auth import limiter
from app.main import create_app
from app.services.auth_tokens import issue_session_token
from app.services.whmcs_memory import InMemoryWhmcs

FIXED_NOW = datetime(2025, 6, 15, 12, 0, 0)


class FakeTextModel:
    """Text model double that returns canned JSON and records prompts."""

    def __init__(self, responses: list[str] | None = None) -> None:
        self.responses = list(responses or [])
        self.prompts: list[str] = []

    async def generate_json(self, prompt, schema):
        self.prompts.append(prompt)
        if not self.responses:
            raise AssertionError("FakeTextModel called more times than expected")
        return self.responses.pop(0)

    @property
    def call_count(self) -> int:
        return len(self.prompts)


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture()
def backend() -> InMemoryWhmcs:
    return InMemoryWhmcs(now=FIXED_NOW)


@pytest.fixture()
def text_model() -> FakeTextModel:
    return FakeTextModel()


@pytest.fixture()
def portal_app(backend, text_model):
    return create_app(backend=backend, text_model=text_model)


@pytest.fixture()
def client(portal_app):
    with TestClient(portal_app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture()
async def async_client(portal_app):
    transport = ASGITransport(app=portal_app, client=("198.51.100.10", 54321))
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


@pytest.fixture()
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_session_token('1')}"}
