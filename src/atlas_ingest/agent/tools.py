"""Tool-handler registry for resolving the agent's tool calls.

Handlers register themselves under a tool name with the ``@tool``
decorator.  :func:`build_registry` binds every registered handler to a
:class:`ToolContext` (the collaborators it wraps), producing a
:class:`ToolRegistry` whose handlers all share the uniform signature
``(arguments) -> result``.

Example — adding a tool::

    @tool("lookup_source")
    async def lookup_source(ctx: ToolContext, arguments: dict[str, Any]) -> Any:
        return await ctx.store.lookup(arguments["source"])

Resolution contract
-------------------
:meth:`ToolRegistry.resolve` *always* returns a
:class:`~atlas_ingest.core.models.ToolOutput` for the call it was given:

- success → ``{"ok": true, "tool": name, "result": ...}``
- handler exception → ``{"ok": false, "tool": name, "error": "..."}``
- unknown tool name → ``{"ok": false, "tool": name, "warning": "unrecognized tool '...'"}``
- undecodable arguments → ``{"ok": false, "tool": name, "error": "..."}``

so the agent always receives a well-formed answer and one failing handler
never stops the others from being resolved.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from atlas_ingest.core.models import ScrapedRecord, ToolCall, ToolOutput
from atlas_ingest.pipeline.forwarder import WebhookForwarder
from atlas_ingest.scraper.renderer import Renderer
from atlas_ingest.store.client import StoreClient

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Awaitable[Any]]
ContextHandler = Callable[["ToolContext", dict[str, Any]], Awaitable[Any]]

# Registry singleton: tool name -> unbound handler
_HANDLERS: dict[str, ContextHandler] = {}


@dataclass(frozen=True)
class ToolContext:
    """Collaborators the built-in tool handlers wrap."""

    renderer: Renderer
    store: StoreClient
    forwarder: WebhookForwarder
    render_max_chars: int = 100_000


def tool(name: str) -> Callable[[ContextHandler], ContextHandler]:
    """Decorator that registers a context-bound tool handler under *name*."""

    def decorator(fn: ContextHandler) -> ContextHandler:
        if name in _HANDLERS:
            logger.warning(
                "tools: '%s' is already registered (was %s). Overwriting with %s.",
                name,
                _HANDLERS[name].__qualname__,
                fn.__qualname__,
            )
        _HANDLERS[name] = fn
        return fn

    return decorator


def registered_tools() -> list[str]:
    return sorted(_HANDLERS)


def _normalise_name(name: str) -> str:
    return name.strip().replace("-", "_")


def _encode(body: dict[str, Any]) -> str:
    return json.dumps(body, default=str, ensure_ascii=False)


def _require_str(arguments: dict[str, Any], key: str) -> str:
    value = arguments.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"argument '{key}' is required")
    return value.strip()


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class ToolRegistry:
    """Maps tool names to handlers and resolves tool calls into outputs.

    Args:
        handlers: Name → handler mapping.  Names are matched after
            replacing ``-`` with ``_``.
        concurrent: Resolve the calls of one observation concurrently
            instead of one after another.
    """

    def __init__(
        self,
        handlers: dict[str, ToolHandler] | None = None,
        *,
        concurrent: bool = False,
    ) -> None:
        self._handlers: dict[str, ToolHandler] = {
            _normalise_name(name): handler for name, handler in (handlers or {}).items()
        }
        self.concurrent = concurrent

    def register(self, name: str, handler: ToolHandler) -> None:
        self._handlers[_normalise_name(name)] = handler

    def names(self) -> list[str]:
        return sorted(self._handlers)

    async def resolve(self, call: ToolCall) -> ToolOutput:
        """Run the handler for *call* and encode whatever happens as its output."""
        if call.argument_error:
            logger.warning(
                "tools: call %s to '%s' has bad arguments: %s",
                call.id,
                call.name,
                call.argument_error,
            )
            body: dict[str, Any] = {"ok": False, "tool": call.name, "error": call.argument_error}
            return ToolOutput(tool_call_id=call.id, output=_encode(body))

        handler = self._handlers.get(_normalise_name(call.name))
        if handler is None:
            logger.warning("tools: unrecognized tool '%s' (call %s)", call.name, call.id)
            body = {
                "ok": False,
                "tool": call.name,
                "warning": f"unrecognized tool '{call.name}'",
            }
            return ToolOutput(tool_call_id=call.id, output=_encode(body))

        try:
            result = await handler(call.arguments)
        except Exception as exc:  # noqa: BLE001
            logger.warning("tools: '%s' failed for call %s: %s", call.name, call.id, exc)
            body = {"ok": False, "tool": call.name, "error": f"{type(exc).__name__}: {exc}"}
        else:
            logger.debug("tools: '%s' resolved call %s", call.name, call.id)
            body = {"ok": True, "tool": call.name, "result": result}
        return ToolOutput(tool_call_id=call.id, output=_encode(body))

    async def resolve_all(self, calls: list[ToolCall]) -> list[ToolOutput]:
        """Resolve every call, returning exactly one output per call in call order."""
        if self.concurrent:
            return list(await asyncio.gather(*(self.resolve(call) for call in calls)))
        outputs: list[ToolOutput] = []
        for call in calls:
            outputs.append(await self.resolve(call))
        return outputs


def build_registry(context: ToolContext, *, concurrent: bool = False) -> ToolRegistry:
    """Bind every ``@tool`` handler to *context* and return the registry."""
    return ToolRegistry(
        {name: functools.partial(fn, context) for name, fn in _HANDLERS.items()},
        concurrent=concurrent,
    )


# ---------------------------------------------------------------------------
# Built-in handlers
# ---------------------------------------------------------------------------


@tool("render_page")
async def render_page(ctx: ToolContext, arguments: dict[str, Any]) -> dict[str, Any]:
    """Render a URL and return (a bounded prefix of) its HTML."""
    url = _require_str(arguments, "url")
    rendered = await ctx.renderer.render(url)
    return {
        "url": rendered.url,
        "final_url": rendered.final_url,
        "status_code": rendered.status_code,
        "length": rendered.length,
        "html": rendered.html[: ctx.render_max_chars],
        "truncated": rendered.length > ctx.render_max_chars,
    }


@tool("extract_listings")
async def extract_listings(ctx: ToolContext, arguments: dict[str, Any]) -> Any:
    """Have the store extract listing records from a page.

    Renders the page first unless the agent already supplied its HTML.
    """
    url = _require_str(arguments, "url")
    html = arguments.get("html")
    if not isinstance(html, str) or not html.strip():
        html = (await ctx.renderer.render(url)).html
    return await ctx.store.extract_listings(source=arguments.get("source"), url=url, html=html)


@tool("ingest_listing")
async def ingest_listing(ctx: ToolContext, arguments: dict[str, Any]) -> dict[str, Any]:
    """Forward a raw page to the upsert webhook."""
    result = await ctx.forwarder.forward(ScrapedRecord.from_mapping(arguments))
    return {"accepted": result.accepted, "status": result.status, "body": result.body}


@tool("normalize")
async def normalize(ctx: ToolContext, arguments: dict[str, Any]) -> Any:
    """Persist one normalized listing.

    Accepts either ``{"listing": {...}}`` or the listing fields directly.
    """
    listing = arguments.get("listing", arguments)
    if not isinstance(listing, dict) or not listing:
        raise ValueError("argument 'listing' must be a non-empty object")
    return await ctx.store.save_normalized(listing)
