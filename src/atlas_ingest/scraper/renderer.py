"""The render collaborator: URL in, HTML out.

:meth:`Renderer.fetch` reports whatever the site answered, error pages
included, and is what ``/proxy`` shows.  :meth:`Renderer.render` is the
strict form used by tool handlers: anything but a usable page raises
:class:`~atlas_ingest.core.exceptions.RenderError`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from atlas_ingest.config.settings import Settings
from atlas_ingest.core.exceptions import RenderError
from atlas_ingest.scraper.http_fetcher import PageFetch, fetch_page

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderResult:
    url: str
    final_url: str
    status_code: int | None
    html: str

    @property
    def length(self) -> int:
        return len(self.html)


class Renderer:
    """Render pages to HTML.

    Args:
        client: Shared :class:`httpx.AsyncClient`.
        settings: Supplies the timeout and the Playwright switch.
    """

    def __init__(self, client: httpx.AsyncClient, *, settings: Settings) -> None:
        self._client = client
        self._timeout = settings.render_timeout_seconds
        self._use_playwright = settings.render_use_playwright

    async def fetch(self, url: str) -> PageFetch:
        """Fetch *url*, escalating JavaScript shells to the browser when enabled.

        Raises:
            RenderError: If *url* is not an http(s) address.
        """
        if not url or not url.startswith(("http://", "https://")):
            raise RenderError(f"not an http(s) URL: {url!r}", url=url)

        page = await fetch_page(self._client, url, timeout=self._timeout)
        if page.is_shell and self._use_playwright:
            from atlas_ingest.scraper.playwright_fetcher import (  # noqa: PLC0415
                render_in_browser,
            )

            logger.info("render: retrying %s in the browser", url)
            rendered = await render_in_browser(url, timeout=self._timeout)
            if rendered.html is not None:
                page = rendered
        return page

    async def render(self, url: str) -> RenderResult:
        """Return the HTML of *url*.

        Raises:
            RenderError: If the page cannot be fetched, is binary, or answers
                with an HTTP error status.
        """
        page = await self.fetch(url)
        failure = page.failure()
        if failure or page.html is None:
            raise RenderError(
                f"render failed for {url}: {failure or 'no html returned'}",
                url=url,
                status_code=page.status_code,
            )
        return RenderResult(
            url=url,
            final_url=page.final_url,
            status_code=page.status_code,
            html=page.html,
        )
