"""Application-wide exception hierarchy for Atlas Ingest.

All custom exceptions subclass ``AtlasIngestError``, enabling consistent
error handling and structured logging across the application.

Hierarchy::

    AtlasIngestError
    ├── TransportFailure         (url, attempts)
    ├── ValidationFailure        (missing)
    ├── UpstreamError            (service, status_code, body)
    │   ├── AgentError
    │   │   └── RunCreationError
    │   └── StoreError
    │       └── PendingFetchError
    └── RenderError              (url, status_code)

Failures scoped to one unit of work (a single tool call, a single batch
item) are never raised past their owner; they are encoded as data.  Only
failures that stop an operation from starting (``RunCreationError``,
``PendingFetchError``) or exhausted transport retries propagate.
"""

from __future__ import annotations

from typing import Any


class AtlasIngestError(Exception):
    """Base class for all Atlas Ingest exceptions.

    All application-specific exceptions inherit from this class so that
    callers can catch the entire hierarchy with a single ``except`` clause
    when needed.
    """


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class TransportFailure(AtlasIngestError):
    """Raised when a network call fails at transport level on every attempt.

    Args:
        url: Target address of the failed call.
        attempts: Number of attempts made before giving up.
        reason: Description of the last transport error.
    """

    def __init__(self, url: str, attempts: int, reason: str) -> None:
        super().__init__(f"transport failure after {attempts} attempt(s) to {url}: {reason}")
        self.url = url
        self.attempts = attempts
        self.reason = reason


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationFailure(AtlasIngestError):
    """Raised when a record lacks required fields.

    Args:
        missing: Names of the absent or blank fields.
    """

    def __init__(self, missing: list[str]) -> None:
        super().__init__(f"Missing required fields: {', '.join(missing)}")
        self.missing = missing


# ---------------------------------------------------------------------------
# Upstream collaborators
# ---------------------------------------------------------------------------


class UpstreamError(AtlasIngestError):
    """Raised when a collaborator answers with a non-success or unusable response.

    Args:
        message: Human-readable description of the failure.
        service: Collaborator name (``"agent"`` or ``"store"``).
        status_code: HTTP status of the response, if one was received.
        body: Raw or decoded response body, truncated for logging.
    """

    def __init__(
        self,
        message: str,
        service: str | None = None,
        status_code: int | None = None,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.service = service
        self.status_code = status_code
        self.body = body


class AgentError(UpstreamError):
    """Raised when the compute agent API rejects or garbles a request."""


class RunCreationError(AgentError):
    """Raised when a run cannot be started on the compute agent.

    Fatal to the ``drive`` call: nothing has been created that could be
    polled.
    """


class StoreError(UpstreamError):
    """Raised when the persistence collaborator rejects or garbles a request."""


class PendingFetchError(StoreError):
    """Raised when the pending-work page cannot be fetched.

    Fatal to the batch: there is nothing to iterate over.
    """


# ---------------------------------------------------------------------------
# Render collaborator
# ---------------------------------------------------------------------------


class RenderError(AtlasIngestError):
    """Raised when a page cannot be rendered to HTML.

    Args:
        message: Description of the failure.
        url: URL that was being rendered.
        status_code: HTTP status of the page, if one was received.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code
