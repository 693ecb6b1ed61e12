"""Shared fixtures: stub completion gateway, catalog, builder and HTTP client."""

from datetime import datetime
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from topprix.catalog import MockCatalog
from topprix.config import Settings
from topprix.errors import ErrorKind
from topprix.llm_gateway import CompletionOutcome
from topprix.main import create_app
from topprix.responses import ResponseBuilder

FIXED_NOW = datetime(2025, 1, 15, 10, 30, 0)


class StubGateway:
    """Records every call and returns a canned outcome."""

    def __init__(self, outcome: Optional[CompletionOutcome] = None, configured: bool = True):
        self.outcome = outcome or CompletionOutcome.ok("AI answer")
        self.configured = configured
        self.calls: List[dict] = []

    async def complete(self, user_prompt, system_prompt=None, model=None, temperature=None, max_tokens=None):
        self.calls.append(
            {
                "user_prompt": user_prompt,
                "system_prompt": system_prompt,
                "model": model,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if not self.configured:
            return CompletionOutcome.failed(ErrorKind.UNCONFIGURED)
        return self.outcome


@pytest.fixture
def catalog() -> MockCatalog:
    return MockCatalog()


@pytest.fixture
def gateway() -> StubGateway:
    return StubGateway()


@pytest.fixture
def unconfigured_gateway() -> StubGateway:
    return StubGateway(configured=False)


@pytest.fixture
def builder(gateway, catalog) -> ResponseBuilder:
    return ResponseBuilder(gateway, catalog, clock=lambda: FIXED_NOW)


@pytest.fixture
def make_client(catalog):
    def _make(gw) -> TestClient:
        app = create_app(Settings(), gateway=gw, catalog=catalog)
        return TestClient(app)

    return _make


@pytest.fixture
def make_message():
    def _make(text: str):
        placeholder = MagicMock()
        placeholder.delete = AsyncMock()
        msg = MagicMock()
        msg.text = text
        msg.from_user.id = 42
        msg.answer = AsyncMock(return_value=placeholder)
        msg.reply = AsyncMock()
        return msg, placeholder

    return _make
