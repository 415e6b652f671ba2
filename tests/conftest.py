"""Shared pytest fixtures for Atlas Ingest tests.

Fixture summary
---------------
settings        — Settings with test base URLs, fast retries and no pacing.
no_sleep        — AsyncMock standing in for ``asyncio.sleep``.
http_client     — ``httpx.AsyncClient`` closed after the test.
resilient_http  — ResilientHttpClient over ``http_client`` using ``no_sleep``.

Every outbound call is mocked with respx; no test needs network access or
running infrastructure.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio

# ---------------------------------------------------------------------------
# Test environment bootstrap
# ---------------------------------------------------------------------------
# Set env vars before any application modules are imported so that the
# module-level ``app`` singleton is built against test values.

_TEST_ENV_DEFAULTS: dict[str, str] = {
    "AGENT_BASE_URL": "https://agent.test/v1",
    "AGENT_API_KEY": "test-agent-key",
    "AGENT_ASSISTANT_ID": "asst_test",
    "STORE_BASE_URL": "https://store.test/functions/v1",
    "STORE_API_KEY": "test-ingest-key",
    "CELERY_BROKER_URL": "memory://",
    "CELERY_RESULT_BACKEND": "cache+memory://",
}

for _key, _default in _TEST_ENV_DEFAULTS.items():
    os.environ.setdefault(_key, _default)

# ---------------------------------------------------------------------------
# Application imports (after env bootstrap)
# ---------------------------------------------------------------------------

from atlas_ingest.config.settings import Settings, get_settings  # noqa: E402
from atlas_ingest.core.http_client import ResilientHttpClient  # noqa: E402

# Clear the lru_cache so Settings() re-reads from the patched environment.
get_settings.cache_clear()

AGENT_BASE_URL = "https://agent.test/v1"
STORE_BASE_URL = "https://store.test/functions/v1"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        agent_base_url=AGENT_BASE_URL,
        agent_api_key="test-agent-key",
        agent_assistant_id="asst_test",
        store_base_url=STORE_BASE_URL,
        store_api_key="test-ingest-key",
        retry_max_attempts=3,
        retry_base_delay=0.5,
        poll_interval=0.0,
        item_pacing_delay=0.8,
    )


@pytest.fixture
def no_sleep() -> AsyncMock:
    return AsyncMock(return_value=None)


@pytest_asyncio.fixture
async def http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def resilient_http(
    http_client: httpx.AsyncClient, settings: Settings, no_sleep: AsyncMock
) -> ResilientHttpClient:
    return ResilientHttpClient(http_client, settings=settings, sleep=no_sleep)
