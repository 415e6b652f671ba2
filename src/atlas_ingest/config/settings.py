"""Application settings loaded from environment variables.

Uses Pydantic Settings v2 for validated, type-safe configuration.
All credentials and base addresses are accessed exclusively through this
module; never call ``os.getenv`` directly elsewhere in the codebase.

The settings object is built once at process startup (API lifespan or
Celery task entry) and handed by reference to every component that needs
it, so no component reads global state on its own.

Usage::

    from atlas_ingest.config.settings import get_settings

    settings = get_settings()
    client = ResilientHttpClient(http, settings=settings)
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-wide configuration backed by environment variables and an optional .env file.

    Every field has a default so that the service can boot for local
    development; the agent and store credentials must be supplied before
    any real traffic is sent.  Legacy variable names from the previous
    deployment (``OPENAI_API_KEY``, ``LOVABLE_BASE_URL`` ...) are accepted
    as aliases.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ------------------------------------------------------------------
    # Compute agent
    # ------------------------------------------------------------------

    agent_base_url: str = "https://api.openai.com/v1"
    """Base address of the assistants-style run API (no trailing slash)."""

    agent_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("agent_api_key", "AGENT_API_KEY", "OPENAI_API_KEY"),
    )
    """Bearer token sent to the agent API."""

    agent_assistant_id: str = Field(
        default="",
        validation_alias=AliasChoices(
            "agent_assistant_id", "AGENT_ASSISTANT_ID", "ASSISTANT_NORMALIZER_ID"
        ),
    )
    """Identifier of the normalizer assistant every run is started against."""

    agent_beta_header: str = "assistants=v2"
    """Value of the ``OpenAI-Beta`` header required by the assistants API."""

    # ------------------------------------------------------------------
    # Persistence collaborator (edge functions + scraper webhook)
    # ------------------------------------------------------------------

    store_base_url: str = Field(
        default="https://rwyobvwzulgmkwzomuog.supabase.co/functions/v1",
        validation_alias=AliasChoices("store_base_url", "STORE_BASE_URL", "LOVABLE_BASE_URL"),
    )
    """Base address of the store's edge functions (no trailing slash)."""

    store_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("store_api_key", "STORE_API_KEY", "LOVABLE_INGEST_KEY"),
    )
    """Static credential sent as the ``x-ingest-key`` header."""

    webhook_path: str = "/scraper-webhook"
    """Path (relative to ``store_base_url``) of the raw-page upsert webhook."""

    webhook_max_attempts: int = 1
    """Attempt ceiling for webhook forwarding.  ``1`` means no retry."""

    # ------------------------------------------------------------------
    # Outbound HTTP + retry
    # ------------------------------------------------------------------

    http_timeout_seconds: float = 30.0
    """Per-request timeout applied to the shared ``httpx.AsyncClient``."""

    retry_max_attempts: int = 3
    """Default attempt ceiling for transport-level retries."""

    retry_base_delay: float = 1.0
    """Base backoff delay in seconds; attempt *n* waits ``base * 2 ** (n - 1)``."""

    # ------------------------------------------------------------------
    # Batch poller
    # ------------------------------------------------------------------

    batch_size: int = 10
    """Number of pending items fetched per batch."""

    batch_timeout_seconds: float = 3_600.0
    """Wall-clock budget for one batch; items not started by then are skipped."""

    item_pacing_delay: float = 0.8
    """Pause in seconds between consecutive batch items."""

    # ------------------------------------------------------------------
    # Run driver
    # ------------------------------------------------------------------

    poll_interval: float = 4.0
    """Delay in seconds before each run-status poll."""

    run_max_polls: int = 150
    """Maximum status polls before a run is declared expired."""

    run_timeout_seconds: float = 600.0
    """Wall-clock budget for one run before it is declared expired."""

    concurrent_tool_calls: bool = False
    """Resolve the tool calls of one observation concurrently instead of in order."""

    run_cleanup_timeout_seconds: float = 5.0
    """Ceiling for the cancel or output fetch that follows a run's polling loop."""

    # ------------------------------------------------------------------
    # Render collaborator
    # ------------------------------------------------------------------

    render_timeout_seconds: int = 30
    """Navigation / request timeout for page rendering."""

    render_use_playwright: bool = False
    """Retry JavaScript-shell pages with headless Chromium (needs the ``browser`` extra)."""

    render_max_chars: int = 100_000
    """HTML characters handed back to the agent by the ``render_page`` tool."""

    # ------------------------------------------------------------------
    # Celery task queue
    # ------------------------------------------------------------------

    celery_broker_url: str = "redis://localhost:6379/1"
    """Redis URL used as Celery's message broker."""

    celery_result_backend: str = "redis://localhost:6379/2"
    """Redis URL used to store Celery task results."""

    pipeline_schedule_minutes: int = 0
    """Run a pipeline batch every N minutes via Celery Beat.  ``0`` disables it."""

    # ------------------------------------------------------------------
    # Application behaviour
    # ------------------------------------------------------------------

    app_name: str = "Atlas Ingest API"
    """Human-readable application name shown in the OpenAPI docs."""

    debug: bool = False
    """Enable FastAPI debug mode and verbose error responses.  Never True in production."""

    log_level: str = "INFO"
    """Logging verbosity.  One of: DEBUG, INFO, WARNING, ERROR, CRITICAL."""

    allowed_origins: list[str] = ["*"]
    """Origins permitted by the CORS middleware."""


@lru_cache
def get_settings() -> Settings:
    """Return the cached application settings singleton.

    Uses ``functools.lru_cache`` so that Pydantic Settings reads the environment
    and .env file exactly once per process lifetime.  In tests, call
    ``get_settings.cache_clear()`` after patching environment variables.

    Returns:
        Settings: The validated settings object.
    """
    return Settings()
