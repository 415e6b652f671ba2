"""HTTP client for the assistants-style compute agent.

Speaks the OpenAI Assistants v2 wire format: a *thread* holds the task
payload as a user message, a *run* executes the configured assistant on
that thread, and a run in ``requires_action`` lists the tool calls it is
waiting on.

Responsibilities:

- ``create_run()``: thread → message → run.  Any failure raises
  :class:`~atlas_ingest.core.exceptions.RunCreationError`.
- ``get_run()``: one status poll, returned as a
  :class:`~atlas_ingest.core.models.RunObservation`.
- ``submit_tool_outputs()``: hand a complete batch of tool outputs back.
- ``cancel_run()``: ask the agent to stop a run the driver gave up on.
- ``fetch_output()``: text of the newest assistant message on the thread.

Non-2xx or non-JSON responses raise
:class:`~atlas_ingest.core.exceptions.AgentError`; exhausted transport
retries raise :class:`~atlas_ingest.core.exceptions.TransportFailure`.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from atlas_ingest.config.settings import Settings
from atlas_ingest.core.exceptions import AgentError, RunCreationError, TransportFailure
from atlas_ingest.core.http_client import MalformedResponse, ResilientHttpClient
from atlas_ingest.core.models import RunHandle, RunObservation, ToolOutput

logger = logging.getLogger(__name__)


class AgentClient:
    """Typed wrapper around the agent's thread/run endpoints.

    Args:
        http: Shared resilient HTTP client.
        settings: Supplies the base address, bearer token, assistant id and
            beta header.
    """

    def __init__(self, http: ResilientHttpClient, *, settings: Settings) -> None:
        self._http = http
        self._base_url = settings.agent_base_url.rstrip("/")
        self._assistant_id = settings.agent_assistant_id
        self._headers = {
            "Authorization": f"Bearer {settings.agent_api_key}",
            "Content-Type": "application/json",
            "OpenAI-Beta": settings.agent_beta_header,
        }

    async def _request(
        self,
        path: str,
        *,
        method: str = "POST",
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        max_attempts: int | None = None,
    ) -> dict[str, Any]:
        result = await self._http.call(
            f"{self._base_url}{path}",
            method=method,
            headers=self._headers,
            json=body,
            params=params,
            max_attempts=max_attempts,
        )
        if isinstance(result, MalformedResponse):
            raise AgentError(
                f"agent {path}: non-JSON response (HTTP {result.status_code})",
                service="agent",
                status_code=result.status_code,
                body=result.raw[:500],
            )
        if not result.ok:
            raise AgentError(
                f"agent {path} error {result.status_code}: {result.text[:200]}",
                service="agent",
                status_code=result.status_code,
                body=result.data,
            )
        if not isinstance(result.data, dict):
            raise AgentError(
                f"agent {path}: expected a JSON object, got {type(result.data).__name__}",
                service="agent",
                status_code=result.status_code,
                body=result.data,
            )
        return result.data

    async def create_run(self, payload: dict[str, Any]) -> RunHandle:
        """Start a run of the configured assistant on *payload*.

        Raises:
            RunCreationError: If the thread, message or run cannot be created.
        """
        try:
            thread = await self._request("/threads", body={})
            thread_id = thread.get("id")
            if not thread_id:
                raise AgentError(
                    f"agent /threads: no thread id in {json.dumps(thread)[:200]}",
                    service="agent",
                    body=thread,
                )
            await self._request(
                f"/threads/{thread_id}/messages",
                body={
                    "role": "user",
                    "content": [{"type": "text", "text": json.dumps(payload, default=str)}],
                },
            )
            run = await self._request(
                f"/threads/{thread_id}/runs",
                body={"assistant_id": self._assistant_id},
            )
            run_id = run.get("id")
            if not run_id:
                raise AgentError(
                    f"agent /threads/{thread_id}/runs: no run id in response",
                    service="agent",
                    body=run,
                )
        except (AgentError, TransportFailure) as exc:
            status_code = getattr(exc, "status_code", None)
            body = getattr(exc, "body", None)
            raise RunCreationError(
                f"could not create run: {exc}",
                service="agent",
                status_code=status_code,
                body=body,
            ) from exc

        logger.info("agent: created run %s on thread %s", run_id, thread_id)
        return RunHandle(run_id=str(run_id), thread_id=str(thread_id))

    async def get_run(self, handle: RunHandle) -> RunObservation:
        """Poll the run once.

        Raises:
            AgentError: If the run object cannot be read, including a
                ``required_action`` block of the wrong shape.
        """
        path = f"/threads/{handle.thread_id}/runs/{handle.run_id}"
        raw = await self._request(path, method="GET")
        try:
            return RunObservation.from_api(raw)
        except ValueError as exc:
            raise AgentError(
                f"agent {path}: malformed run object: {exc}",
                service="agent",
                body=raw,
            ) from exc

    async def submit_tool_outputs(self, handle: RunHandle, outputs: list[ToolOutput]) -> None:
        """Report a complete batch of tool outputs back to the run."""
        await self._request(
            f"/threads/{handle.thread_id}/runs/{handle.run_id}/submit_tool_outputs",
            body={"tool_outputs": [output.to_api() for output in outputs]},
        )

    async def cancel_run(self, handle: RunHandle) -> None:
        """Ask the agent to stop the run.  Sent once, without transport retry."""
        await self._request(
            f"/threads/{handle.thread_id}/runs/{handle.run_id}/cancel",
            max_attempts=1,
        )

    async def fetch_output(self, handle: RunHandle) -> str | None:
        """Return the text of the newest assistant message on the run's thread.

        Returns:
            Concatenated text parts of the message, or ``None`` when the
            thread holds no assistant message.
        """
        listing = await self._request(
            f"/threads/{handle.thread_id}/messages",
            method="GET",
            params={"order": "desc", "limit": 10},
        )
        for message in listing.get("data") or []:
            if not isinstance(message, dict) or message.get("role") != "assistant":
                continue
            parts = [
                part["text"].get("value", "")
                for part in message.get("content") or []
                if isinstance(part, dict)
                and part.get("type") == "text"
                and isinstance(part.get("text"), dict)
            ]
            return "\n".join(p for p in parts if p) or None
        return None
