"""Resilient outbound HTTP calls with exponential-backoff retry.

Every collaborator client (agent, store, webhook) sends its requests
through :class:`ResilientHttpClient`.  The client wraps one shared
``httpx.AsyncClient`` and adds two behaviours on top of it:

1. **Transport retry** — connection errors, timeouts and protocol errors
   (``httpx.TransportError``) are retried up to ``max_attempts`` times,
   waiting ``base_delay * 2 ** (attempt - 1)`` seconds between attempts.
   When the last attempt fails a :class:`TransportFailure` is raised.
2. **Typed body decoding** — a response whose body is not JSON comes back
   as :class:`MalformedResponse` carrying the raw text instead of raising,
   so each caller decides whether that is fatal.

Non-success HTTP statuses are *not* retried: the response is returned and
the caller inspects ``response.ok``.

The client holds no per-call state and is safe to share between
concurrent tasks.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

import httpx

from atlas_ingest.config.settings import Settings
from atlas_ingest.core.exceptions import TransportFailure

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JsonResponse:
    """A response whose body decoded as JSON (``data`` is ``None`` for an empty body)."""

    status_code: int
    data: Any
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass(frozen=True)
class MalformedResponse:
    """A response whose body could not be decoded as JSON."""

    status_code: int
    raw: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


CallResult = Union[JsonResponse, MalformedResponse]


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Return the wait before retrying after failed attempt number *attempt* (1-based)."""
    return base_delay * (2 ** (attempt - 1))


def _decode(response: httpx.Response) -> CallResult:
    text = response.text
    if not text.strip():
        return JsonResponse(status_code=response.status_code, data=None, text=text)
    try:
        data = response.json()
    except ValueError:
        return MalformedResponse(status_code=response.status_code, raw=text)
    return JsonResponse(status_code=response.status_code, data=data, text=text)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class ResilientHttpClient:
    """Send single HTTP calls with bounded transport retry.

    Args:
        client: Shared :class:`httpx.AsyncClient`.  Its lifetime is owned
            by the caller (API lifespan or worker task).
        settings: Supplies the default attempt ceiling and base delay.
        sleep: Awaitable used for backoff waits; injectable for tests.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        settings: Settings,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._client = client
        self.max_attempts = settings.retry_max_attempts
        self.base_delay = settings.retry_base_delay
        self._sleep = sleep

    async def call(
        self,
        url: str,
        *,
        method: str = "POST",
        headers: dict[str, str] | None = None,
        json: Any = None,
        params: dict[str, Any] | None = None,
        max_attempts: int | None = None,
        base_delay: float | None = None,
    ) -> CallResult:
        """Perform one logical call, retrying transport failures with backoff.

        Args:
            url: Absolute target address.
            method: HTTP method.
            headers: Request headers.
            json: JSON-serialisable request body, or ``None`` for no body.
            params: Query-string parameters.
            max_attempts: Attempt ceiling; defaults to the configured value.
            base_delay: Backoff base in seconds; defaults to the configured value.

        Returns:
            :class:`JsonResponse` or :class:`MalformedResponse`, whatever the
            HTTP status.

        Raises:
            TransportFailure: If every attempt failed at transport level.
        """
        attempts_allowed = max(1, max_attempts if max_attempts is not None else self.max_attempts)
        delay_base = self.base_delay if base_delay is None else base_delay

        attempt = 0
        while True:
            attempt += 1
            try:
                response = await self._client.request(
                    method,
                    url,
                    headers=headers,
                    json=json,
                    params=params,
                )
            except httpx.TransportError as exc:
                if attempt >= attempts_allowed:
                    logger.warning(
                        "http: %s %s failed after %d attempt(s): %s",
                        method,
                        url,
                        attempt,
                        exc,
                    )
                    raise TransportFailure(url, attempt, str(exc) or type(exc).__name__) from exc
                delay = backoff_delay(attempt, delay_base)
                logger.warning(
                    "http: %s %s attempt %d/%d failed (%s), retrying in %.2fs",
                    method,
                    url,
                    attempt,
                    attempts_allowed,
                    exc,
                    delay,
                )
                await self._sleep(delay)
                continue

            result = _decode(response)
            if isinstance(result, MalformedResponse):
                logger.info(
                    "http: %s %s returned a non-JSON body (status=%d, %d chars)",
                    method,
                    url,
                    result.status_code,
                    len(result.raw),
                )
            return result
