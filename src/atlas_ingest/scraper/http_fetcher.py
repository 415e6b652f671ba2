"""Plain HTTP page fetch for the render collaborator.

Pages are requested the way a browser arriving from a search result asks
for them (:data:`~atlas_ingest.scraper.config.BROWSER_HEADERS`).  An error
status is still a page: bot walls answer 403 with a challenge body, and
``/proxy`` exists to show it.  Only transport failures and binary content
leave :attr:`PageFetch.html` empty.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

import httpx

from atlas_ingest.scraper.config import (
    BINARY_CONTENT_TYPES,
    BROWSER_HEADERS,
    JS_SHELL_BODY_THRESHOLD,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PageFetch:
    """What one fetch of a listing page produced.

    Attributes:
        url: The URL that was asked for.
        final_url: Address after redirects; ``url`` when nothing was received.
        status_code: Status of the final response, ``None`` when none arrived.
        html: Response body, whatever the status.  ``None`` when no response
            arrived or the body is binary.
        error: Why no usable body exists (timeout, unreachable host, binary
            content), or ``None``.
    """

    url: str
    final_url: str
    status_code: int | None = None
    html: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.status_code is not None and self.status_code < 400

    @property
    def is_shell(self) -> bool:
        """A successful response too thin to carry listings: the page is built by JavaScript."""
        return self.ok and len((self.html or "").strip()) < JS_SHELL_BODY_THRESHOLD

    def failure(self) -> str | None:
        """Return why this page cannot be handed to the agent, or ``None``."""
        if self.error:
            return self.error
        if not self.ok:
            return f"HTTP {self.status_code}"
        return None


def is_binary(content_type: str) -> bool:
    media_type = content_type.partition(";")[0].strip().lower()
    return media_type.startswith(BINARY_CONTENT_TYPES)


async def fetch_page(client: httpx.AsyncClient, url: str, *, timeout: float) -> PageFetch:
    """GET *url* with browser headers, following redirects.

    Never raises for network trouble; the reason lands in
    :attr:`PageFetch.error`.
    """
    try:
        response = await client.get(
            url,
            headers=BROWSER_HEADERS,
            follow_redirects=True,
            timeout=timeout,
        )
    except httpx.TimeoutException:
        logger.warning("render: %s timed out after %ss", url, timeout)
        return PageFetch(url=url, final_url=url, error="timeout")
    except httpx.HTTPError as exc:
        logger.warning("render: %s unreachable: %s", url, exc)
        return PageFetch(url=url, final_url=url, error=f"{type(exc).__name__}: {exc}")

    content_type = response.headers.get("content-type", "")
    page = PageFetch(url=url, final_url=str(response.url), status_code=response.status_code)
    if is_binary(content_type):
        logger.info("render: %s is %s, not a page", url, content_type)
        return replace(page, error=f"binary content-type: {content_type}")

    page = replace(page, html=response.text)
    if not page.ok:
        logger.info("render: %s answered HTTP %d (%d chars)", url, page.status_code, len(page.html))
    elif page.is_shell:
        logger.info("render: %s looks like a JavaScript shell (%d chars)", url, len(page.html))
    return page
