"""Wiring of the long-lived components around one shared ``httpx.AsyncClient``.

Both the FastAPI lifespan and the Celery task build their object graph
here so that the two entry points cannot drift apart.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from atlas_ingest.agent.client import AgentClient
from atlas_ingest.agent.driver import RunDriver
from atlas_ingest.agent.tools import ToolContext, ToolRegistry, build_registry
from atlas_ingest.config.settings import Settings
from atlas_ingest.core.http_client import ResilientHttpClient
from atlas_ingest.pipeline.batch import BatchPoller
from atlas_ingest.pipeline.forwarder import WebhookForwarder
from atlas_ingest.scraper.renderer import Renderer
from atlas_ingest.store.client import StoreClient


@dataclass
class Components:
    http: ResilientHttpClient
    store: StoreClient
    forwarder: WebhookForwarder
    renderer: Renderer
    agent: AgentClient
    registry: ToolRegistry
    driver: RunDriver
    poller: BatchPoller


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    """Return the process-wide async client; the caller owns closing it."""
    return httpx.AsyncClient(timeout=settings.http_timeout_seconds)


def build_components(client: httpx.AsyncClient, settings: Settings) -> Components:
    """Build every component on top of *client*."""
    http = ResilientHttpClient(client, settings=settings)
    store = StoreClient(http, settings=settings)
    forwarder = WebhookForwarder(http, settings=settings)
    renderer = Renderer(client, settings=settings)
    agent = AgentClient(http, settings=settings)
    registry = build_registry(
        ToolContext(
            renderer=renderer,
            store=store,
            forwarder=forwarder,
            render_max_chars=settings.render_max_chars,
        ),
        concurrent=settings.concurrent_tool_calls,
    )
    driver = RunDriver(agent, registry, settings=settings)
    poller = BatchPoller(store, driver.drive, settings=settings)
    return Components(
        http=http,
        store=store,
        forwarder=forwarder,
        renderer=renderer,
        agent=agent,
        registry=registry,
        driver=driver,
        poller=poller,
    )
