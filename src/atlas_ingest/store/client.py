"""Client for the persistence collaborator's edge functions.

The store is a set of HTTP functions under ``settings.store_base_url``.
Every function takes a JSON body, authenticates with the static
``x-ingest-key`` header, and answers with JSON.  List-returning functions
wrap their rows in ``{"data": [...]}``.

Error handling maps responses to typed exceptions:

- Non-2xx status → :class:`~atlas_ingest.core.exceptions.StoreError`
- Non-JSON body → :class:`~atlas_ingest.core.exceptions.StoreError`
- Transport failure after retries →
  :class:`~atlas_ingest.core.exceptions.TransportFailure` (except for the
  pending-work fetch, where every failure becomes
  :class:`~atlas_ingest.core.exceptions.PendingFetchError`)
"""

from __future__ import annotations

import logging
from typing import Any

from atlas_ingest.config.settings import Settings
from atlas_ingest.core.exceptions import PendingFetchError, StoreError, TransportFailure
from atlas_ingest.core.http_client import MalformedResponse, ResilientHttpClient

logger = logging.getLogger(__name__)

PENDING_PATH = "/get-not-normalized"
RECENT_PATH = "/get-recent-normalized"
EXTRACT_LISTINGS_PATH = "/extract-listings"
SAVE_NORMALIZED_PATH = "/save-normalized"


def store_headers(settings: Settings) -> dict[str, str]:
    """Return the headers every store call carries."""
    headers = {"Content-Type": "application/json"}
    if settings.store_api_key:
        headers["x-ingest-key"] = settings.store_api_key
    return headers


def _rows(payload: Any, path: str) -> list[dict[str, Any]]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        data = payload.get("data")
        if data is None:
            return []
        if isinstance(data, list):
            return data
    raise StoreError(
        f"store {path}: expected a list under 'data', got {type(payload).__name__}",
        service="store",
        body=payload,
    )


class StoreClient:
    """Typed wrapper around the store's edge functions.

    Args:
        http: Shared resilient HTTP client.
        settings: Supplies the base address and credential.
    """

    def __init__(self, http: ResilientHttpClient, *, settings: Settings) -> None:
        self._http = http
        self._base_url = settings.store_base_url.rstrip("/")
        self._headers = store_headers(settings)

    async def _post(self, path: str, body: dict[str, Any]) -> Any:
        """POST *body* to the function at *path* and return the decoded JSON.

        Raises:
            StoreError: On a non-2xx status or a non-JSON body.
            TransportFailure: When the call could not be delivered.
        """
        result = await self._http.call(
            f"{self._base_url}{path}",
            method="POST",
            headers=self._headers,
            json=body,
        )
        if isinstance(result, MalformedResponse):
            raise StoreError(
                f"store {path}: non-JSON response (HTTP {result.status_code})",
                service="store",
                status_code=result.status_code,
                body=result.raw[:500],
            )
        if not result.ok:
            raise StoreError(
                f"store {path} error {result.status_code}: {result.text[:200]}",
                service="store",
                status_code=result.status_code,
                body=result.data,
            )
        return result.data

    async def get_pending(self, limit: int) -> list[dict[str, Any]]:
        """Return up to *limit* records that have not been processed yet.

        One call, no pagination: the caller decides whether to ask again.

        Raises:
            PendingFetchError: On any failure, transport included.
        """
        try:
            payload = await self._post(PENDING_PATH, {"limit": limit})
            rows = _rows(payload, PENDING_PATH)
        except StoreError as exc:
            raise PendingFetchError(
                str(exc), service="store", status_code=exc.status_code, body=exc.body
            ) from exc
        except TransportFailure as exc:
            raise PendingFetchError(str(exc), service="store") from exc
        logger.info("store: %d pending record(s) (limit=%d)", len(rows), limit)
        return rows[:limit]

    async def get_recent_processed(self, window_hours: int, limit: int) -> list[dict[str, Any]]:
        """Return up to *limit* records processed within the last *window_hours*."""
        payload = await self._post(RECENT_PATH, {"window_hours": window_hours, "limit": limit})
        return _rows(payload, RECENT_PATH)[:limit]

    async def extract_listings(self, *, source: str | None, url: str, html: str) -> Any:
        """Ask the store to extract listing records from a rendered page."""
        return await self._post(
            EXTRACT_LISTINGS_PATH,
            {"source": source, "url": url, "html": html},
        )

    async def save_normalized(self, listing: dict[str, Any]) -> Any:
        """Upsert one normalized listing produced by the agent."""
        return await self._post(SAVE_NORMALIZED_PATH, {"listing": listing})
