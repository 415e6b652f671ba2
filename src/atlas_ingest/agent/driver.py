"""Run driver: the agent run state machine.

::

    created ──► (poll) ──► in_progress ─────────┐
                   ▲                             │
                   │       awaiting_action ──► resolve tool calls
                   │             │             submit outputs
                   └─────────────┴─────────────┘
                                 │
                   completed / failed / expired  (terminal)

One :meth:`RunDriver.drive` call owns one run from creation to a terminal
state:

1. **created** — the payload is submitted; a rejected creation raises
   :class:`~atlas_ingest.core.exceptions.RunCreationError` immediately.
2. **polling** — after every ``poll_interval`` the run is fetched.
   ``awaiting_action`` observations have every tool call resolved through
   the :class:`~atlas_ingest.agent.tools.ToolRegistry` and the complete
   batch of outputs submitted in one call.  A failed submission or a failed
   poll is logged and the loop continues; the next poll shows what the
   agent made of it.
3. **cutoff** — ``max_polls`` and a wall-clock ``timeout`` bound the loop.
   Running past either returns ``expired`` and the run is cancelled on the
   agent (best effort).  The deadline is enforced with
   ``asyncio.timeout_at`` so an in-flight poll or tool call is cancelled
   rather than awaited.  The cancel and the output fetch that follow the
   loop are each held to ``run_cleanup_timeout_seconds``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from atlas_ingest.agent.client import AgentClient
from atlas_ingest.agent.tools import ToolRegistry
from atlas_ingest.config.settings import Settings
from atlas_ingest.core.exceptions import AtlasIngestError
from atlas_ingest.core.models import RunHandle, RunObservation, RunStatus

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]


@dataclass
class DriveResult:
    """Outcome of one :meth:`RunDriver.drive` call."""

    final_status: RunStatus
    run_id: str
    thread_id: str
    polls: int = 0
    tool_batches: int = 0
    output: str | None = None
    last_error: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "final_status": self.final_status.value,
            "run_id": self.run_id,
            "thread_id": self.thread_id,
            "polls": self.polls,
            "tool_batches": self.tool_batches,
            "output": self.output,
            "last_error": self.last_error,
        }


class RunDriver:
    """Drive agent runs to a terminal state.

    Args:
        agent: Agent API client.
        registry: Tool registry used to answer ``awaiting_action`` observations.
        settings: Supplies the poll interval and the default cutoffs.
        sleep: Awaitable used for the inter-poll delay; injectable for tests.
    """

    def __init__(
        self,
        agent: AgentClient,
        registry: ToolRegistry,
        *,
        settings: Settings,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._agent = agent
        self._registry = registry
        self.poll_interval = settings.poll_interval
        self.max_polls = settings.run_max_polls
        self.timeout = settings.run_timeout_seconds
        self.cleanup_timeout = settings.run_cleanup_timeout_seconds
        self._sleep = sleep

    async def drive(
        self,
        payload: dict[str, Any],
        *,
        max_polls: int | None = None,
        timeout: float | None = None,
    ) -> DriveResult:
        """Create a run for *payload* and drive it until it is terminal.

        Args:
            payload: Task payload handed to the agent as the user message.
            max_polls: Poll ceiling; defaults to ``settings.run_max_polls``.
            timeout: Wall-clock budget in seconds, covering creation and
                polling; defaults to ``settings.run_timeout_seconds``.

        Returns:
            A :class:`DriveResult` whose ``final_status`` is ``completed``,
            ``failed`` or ``expired``.

        Raises:
            RunCreationError: If the agent rejects the run outright.
            TimeoutError: If the budget runs out before the run is created.
        """
        poll_ceiling = self.max_polls if max_polls is None else max_polls
        budget = self.timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + budget

        async with asyncio.timeout_at(deadline):
            handle = await self._agent.create_run(payload)

        result = DriveResult(
            final_status=RunStatus.CREATED,
            run_id=handle.run_id,
            thread_id=handle.thread_id,
        )
        cut_off = False
        try:
            async with asyncio.timeout_at(deadline):
                cut_off = await self._poll_until_terminal(handle, result, poll_ceiling)
        except TimeoutError:
            logger.warning(
                "driver: run %s exceeded its %.1fs budget after %d poll(s)",
                handle.run_id,
                budget,
                result.polls,
            )
            handle.status = RunStatus.EXPIRED
            cut_off = True

        result.final_status = handle.status
        if cut_off:
            await self._cancel(handle)
        elif handle.status is RunStatus.COMPLETED:
            result.output = await self._fetch_output(handle)

        logger.info(
            "driver: run %s finished %s (polls=%d, tool_batches=%d)",
            handle.run_id,
            handle.status.value,
            result.polls,
            result.tool_batches,
        )
        return result

    async def _poll_until_terminal(
        self,
        handle: RunHandle,
        result: DriveResult,
        poll_ceiling: int,
    ) -> bool:
        """Poll until the run is terminal.  Returns ``True`` when the poll ceiling cut it off."""
        while not handle.status.is_terminal:
            if result.polls >= poll_ceiling:
                logger.warning(
                    "driver: run %s still %s after %d poll(s), giving up",
                    handle.run_id,
                    handle.status.value,
                    result.polls,
                )
                handle.status = RunStatus.EXPIRED
                return True

            await self._sleep(self.poll_interval)
            result.polls += 1

            try:
                observation = await self._agent.get_run(handle)
            except AtlasIngestError as exc:
                logger.warning(
                    "driver: poll %d of run %s failed: %s", result.polls, handle.run_id, exc
                )
                continue

            handle.status = observation.status
            logger.debug(
                "driver: run %s poll %d → %s", handle.run_id, result.polls, handle.status.value
            )

            if handle.status is RunStatus.AWAITING_ACTION:
                await self._act(handle, observation)
                result.tool_batches += 1
            elif handle.status in (RunStatus.FAILED, RunStatus.EXPIRED):
                result.last_error = observation.last_error
                if observation.last_error:
                    logger.warning(
                        "driver: run %s ended %s: %s",
                        handle.run_id,
                        handle.status.value,
                        observation.last_error,
                    )
        return False

    async def _act(self, handle: RunHandle, observation: RunObservation) -> None:
        """Resolve every tool call of *observation* and submit the outputs together."""
        calls = observation.tool_calls
        outputs = await self._registry.resolve_all(calls)
        logger.info(
            "driver: run %s resolved %d tool call(s): %s",
            handle.run_id,
            len(outputs),
            ", ".join(call.name for call in calls),
        )
        try:
            await self._agent.submit_tool_outputs(handle, outputs)
        except AtlasIngestError as exc:
            logger.warning("driver: submitting outputs for run %s failed: %s", handle.run_id, exc)

    async def _cancel(self, handle: RunHandle) -> None:
        try:
            async with asyncio.timeout(self.cleanup_timeout):
                await self._agent.cancel_run(handle)
        except (AtlasIngestError, TimeoutError) as exc:
            logger.warning("driver: cancelling run %s failed: %r", handle.run_id, exc)

    async def _fetch_output(self, handle: RunHandle) -> str | None:
        try:
            async with asyncio.timeout(self.cleanup_timeout):
                return await self._agent.fetch_output(handle)
        except (AtlasIngestError, TimeoutError) as exc:
            logger.warning("driver: fetching output of run %s failed: %r", handle.run_id, exc)
            return None
