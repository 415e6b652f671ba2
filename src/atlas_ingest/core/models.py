"""Internal data model shared by the forwarder, batch poller and run driver.

These are plain dataclasses rather than pydantic models: they never cross
the HTTP boundary directly (request bodies live in
:mod:`atlas_ingest.core.schemas`) and they are built from already-decoded
JSON returned by collaborators.
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from atlas_ingest.core.exceptions import ValidationFailure

logger = logging.getLogger(__name__)

REQUIRED_RECORD_FIELDS: tuple[str, ...] = ("source", "url", "html")


# ---------------------------------------------------------------------------
# Scraped pages
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScrapedRecord:
    """A raw scraped page as handed over by the external scraper.

    ``url`` is the natural key: the store upserts on it, so forwarding the
    same URL twice replaces the earlier record.
    """

    source: str | None
    url: str | None
    html: str | None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> ScrapedRecord:
        data = data or {}
        return cls(
            source=data.get("source"),
            url=data.get("url"),
            html=data.get("html"),
        )

    def missing_fields(self) -> list[str]:
        """Return the names of required fields that are absent or blank."""
        missing: list[str] = []
        for name in REQUIRED_RECORD_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                missing.append(name)
        return missing

    def validate(self) -> None:
        """Raise :class:`ValidationFailure` naming every missing field."""
        missing = self.missing_fields()
        if missing:
            raise ValidationFailure(missing)

    def to_payload(self) -> dict[str, str]:
        return {"source": self.source or "", "url": self.url or "", "html": self.html or ""}


# ---------------------------------------------------------------------------
# Pending work
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PendingItem:
    """A not-yet-processed record returned by the store.

    Attributes:
        identifier: The record's ``id``, or its ``url`` when no id is present.
        url: The page URL, when the record carries one.
        data: The record exactly as the store returned it.  Used verbatim
            as the run driver's task payload.
    """

    identifier: str
    url: str | None
    data: dict[str, Any]

    @classmethod
    def from_raw(cls, raw: Any) -> PendingItem:
        """Build a pending item from one element of the store's ``data`` array.

        Raises:
            ValueError: If *raw* is not an object or has neither ``id`` nor ``url``.
        """
        if not isinstance(raw, dict):
            raise ValueError(f"pending item is not an object: {raw!r}")
        url = raw.get("url") or None
        identifier = raw.get("id") or url
        if not identifier:
            raise ValueError("pending item has neither 'id' nor 'url'")
        return cls(identifier=str(identifier), url=url, data=dict(raw))


# ---------------------------------------------------------------------------
# Agent runs
# ---------------------------------------------------------------------------


class RunStatus(str, enum.Enum):
    """Lifecycle states of one agent run as seen by the run driver."""

    CREATED = "created"
    IN_PROGRESS = "in_progress"
    AWAITING_ACTION = "awaiting_action"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES

    @classmethod
    def from_wire(cls, value: Any) -> RunStatus:
        """Map an agent API status string onto a driver state.

        Unknown values are treated as still running so the poll cap, not a
        parsing accident, decides when to give up.
        """
        if isinstance(value, str) and value in _WIRE_STATUS_MAP:
            return _WIRE_STATUS_MAP[value]
        logger.warning("models: unknown run status %r, treating as in_progress", value)
        return cls.IN_PROGRESS


_TERMINAL_STATUSES: frozenset[RunStatus] = frozenset(
    {RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.EXPIRED}
)

_WIRE_STATUS_MAP: dict[str | None, RunStatus] = {
    "queued": RunStatus.IN_PROGRESS,
    "in_progress": RunStatus.IN_PROGRESS,
    "cancelling": RunStatus.IN_PROGRESS,
    "requires_action": RunStatus.AWAITING_ACTION,
    "completed": RunStatus.COMPLETED,
    "failed": RunStatus.FAILED,
    "cancelled": RunStatus.FAILED,
    "incomplete": RunStatus.FAILED,
    "expired": RunStatus.EXPIRED,
}


@dataclass
class RunHandle:
    """One invocation of the compute agent for one task payload."""

    run_id: str
    thread_id: str
    status: RunStatus = RunStatus.CREATED


@dataclass(frozen=True)
class ToolCall:
    """A side-effecting action the agent asks the driver to perform.

    ``argument_error`` is set when the agent sent argument text that is not
    a JSON object; the registry then answers with an error output instead
    of invoking the handler.
    """

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    argument_error: str | None = None

    @classmethod
    def from_api(cls, raw: Any) -> ToolCall:
        """Build a tool call from one ``required_action`` entry.

        Raises:
            ValueError: If the entry or its ``function`` is not an object.
        """
        if not isinstance(raw, Mapping):
            raise ValueError(f"tool call is not an object: {raw!r}")
        function = raw.get("function") or {}
        if not isinstance(function, Mapping):
            raise ValueError(f"tool call {raw.get('id')!r} has a non-object function")
        name = str(function.get("name") or "")
        raw_args = function.get("arguments")
        if raw_args is None or raw_args == "":
            return cls(id=str(raw.get("id", "")), name=name)
        if isinstance(raw_args, dict):
            return cls(id=str(raw.get("id", "")), name=name, arguments=dict(raw_args))
        try:
            decoded = json.loads(raw_args)
        except (TypeError, ValueError) as exc:
            return cls(
                id=str(raw.get("id", "")),
                name=name,
                argument_error=f"arguments are not valid JSON: {exc}",
            )
        if not isinstance(decoded, dict):
            return cls(
                id=str(raw.get("id", "")),
                name=name,
                argument_error="arguments must be a JSON object",
            )
        return cls(id=str(raw.get("id", "")), name=name, arguments=decoded)


@dataclass(frozen=True)
class ToolOutput:
    """The answer to one :class:`ToolCall`, keyed by the call's exact id."""

    tool_call_id: str
    output: str

    def to_api(self) -> dict[str, str]:
        return {"tool_call_id": self.tool_call_id, "output": self.output}

    def decoded(self) -> Any:
        return json.loads(self.output)


@dataclass
class RunObservation:
    """The state of a run at one poll."""

    status: RunStatus
    tool_calls: list[ToolCall] = field(default_factory=list)
    last_error: Any = None
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, raw: Mapping[str, Any]) -> RunObservation:
        """Build an observation from a decoded run object.

        Raises:
            ValueError: If the ``required_action`` block is not shaped as
                objects holding a list of tool calls.
        """
        status = RunStatus.from_wire(raw.get("status"))
        tool_calls: list[ToolCall] = []
        if status is RunStatus.AWAITING_ACTION:
            required = raw.get("required_action") or {}
            if not isinstance(required, Mapping):
                raise ValueError("required_action is not an object")
            submit = required.get("submit_tool_outputs") or {}
            if not isinstance(submit, Mapping):
                raise ValueError("submit_tool_outputs is not an object")
            entries = submit.get("tool_calls") or []
            if not isinstance(entries, list):
                raise ValueError("tool_calls is not a list")
            tool_calls = [ToolCall.from_api(tc) for tc in entries]
        return cls(
            status=status,
            tool_calls=tool_calls,
            last_error=raw.get("last_error"),
            raw=dict(raw),
        )
