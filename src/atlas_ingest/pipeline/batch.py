"""Batch poller: drive one page of pending store records through the agent.

``run_batch`` fetches up to ``limit`` pending records in a single store
call and hands each one, strictly in order, to a processor (normally
:meth:`~atlas_ingest.agent.driver.RunDriver.drive`).

**Throttling**: items are never processed concurrently, and a fixed
``item_pacing_delay`` pause separates consecutive items (not applied after
the last one) to stay inside the agent's and the store's rate limits.

**Error isolation**: an exception while processing one item is logged as a
warning and counted in ``failed``; the batch carries on.  Only failure to
fetch the pending page itself
(:class:`~atlas_ingest.core.exceptions.PendingFetchError`) is raised.

**Deadline**: once the batch's wall-clock budget is spent no further items
are started; each item's run receives whatever budget remains.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol

from atlas_ingest.agent.driver import DriveResult
from atlas_ingest.config.settings import Settings
from atlas_ingest.core.models import PendingItem, RunStatus

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]


class PendingSource(Protocol):
    async def get_pending(self, limit: int) -> list[dict[str, Any]]: ...


class ItemProcessor(Protocol):
    async def __call__(
        self, payload: dict[str, Any], *, timeout: float | None = None
    ) -> DriveResult: ...


@dataclass
class ItemOutcome:
    """What happened to one pending item."""

    identifier: str
    status: str
    run_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "status": self.status,
            "run_id": self.run_id,
            "error": self.error,
        }


@dataclass
class BatchResult:
    """Counters and per-item outcomes of one batch."""

    attempted: int = 0
    succeeded: int = 0
    outcomes: list[ItemOutcome] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return self.attempted - self.succeeded

    def summary(self) -> dict[str, int]:
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
        }


class BatchPoller:
    """Fetch pending records and process them one at a time.

    Args:
        store: Source of pending records (a
            :class:`~atlas_ingest.store.client.StoreClient`).
        process: Coroutine function run for each record's payload.
        settings: Supplies the batch size, pacing delay and batch budget.
        sleep: Awaitable used for the pacing delay; injectable for tests.
    """

    def __init__(
        self,
        store: PendingSource,
        process: ItemProcessor,
        *,
        settings: Settings,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._store = store
        self._process = process
        self.batch_size = settings.batch_size
        self.pacing_delay = settings.item_pacing_delay
        self.timeout = settings.batch_timeout_seconds
        self._sleep = sleep

    async def run_batch(
        self,
        limit: int | None = None,
        *,
        timeout: float | None = None,
    ) -> BatchResult:
        """Process one page of pending records.

        Args:
            limit: Maximum records to fetch; defaults to ``settings.batch_size``.
            timeout: Wall-clock budget in seconds; defaults to
                ``settings.batch_timeout_seconds``.

        Returns:
            A :class:`BatchResult`.  Never raises for per-item failures.

        Raises:
            PendingFetchError: If the pending page cannot be fetched.
        """
        page_size = self.batch_size if limit is None else limit
        budget = self.timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + budget

        rows = await self._store.get_pending(page_size)
        logger.info("batch: %d pending record(s) to process", len(rows))

        result = BatchResult()
        for index, raw in enumerate(rows):
            if index > 0:
                await self._sleep(self.pacing_delay)

            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning(
                    "batch: budget of %.1fs spent, %d record(s) left unprocessed",
                    budget,
                    len(rows) - index,
                )
                break

            result.attempted += 1
            outcome = await self._process_one(raw, index, remaining)
            if outcome.status == RunStatus.COMPLETED.value:
                result.succeeded += 1
            result.outcomes.append(outcome)

        logger.info(
            "batch: done, %d succeeded / %d attempted",
            result.succeeded,
            result.attempted,
        )
        return result

    async def _process_one(self, raw: Any, index: int, remaining: float) -> ItemOutcome:
        identifier = f"#{index}"
        try:
            item = PendingItem.from_raw(raw)
            identifier = item.identifier
            logger.info("batch: processing %s", item.url or identifier)
            drive_result = await self._process(item.data, timeout=remaining)
        except Exception as exc:  # noqa: BLE001
            logger.warning("batch: item %s failed: %s", identifier, exc)
            return ItemOutcome(
                identifier=identifier,
                status="error",
                error=f"{type(exc).__name__}: {exc}",
            )
        return ItemOutcome(
            identifier=identifier,
            status=drive_result.final_status.value,
            run_id=drive_result.run_id,
        )
