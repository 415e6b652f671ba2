"""FastAPI dependency injection providers.

Every provider resolves a component from ``request.app.state.components``
(populated by the application lifespan).  Tests either attach their own
:class:`~atlas_ingest.core.components.Components` to ``app.state`` or
override individual providers through ``app.dependency_overrides``.

Dependency hierarchy::

    get_components
    ├── get_forwarder
    ├── get_store
    ├── get_renderer
    ├── get_driver
    └── get_poller
"""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from atlas_ingest.agent.driver import RunDriver
from atlas_ingest.core.components import Components
from atlas_ingest.pipeline.batch import BatchPoller
from atlas_ingest.pipeline.forwarder import WebhookForwarder
from atlas_ingest.scraper.renderer import Renderer
from atlas_ingest.store.client import StoreClient


def get_components(request: Request) -> Components:
    """Return the components built at startup.

    Raises:
        HTTPException 503: If the lifespan has not run yet.
    """
    components: Components | None = getattr(request.app.state, "components", None)
    if components is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service components are not initialised.",
        )
    return components


def get_forwarder(request: Request) -> WebhookForwarder:
    return get_components(request).forwarder


def get_store(request: Request) -> StoreClient:
    return get_components(request).store


def get_renderer(request: Request) -> Renderer:
    return get_components(request).renderer


def get_driver(request: Request) -> RunDriver:
    return get_components(request).driver


def get_poller(request: Request) -> BatchPoller:
    return get_components(request).poller
