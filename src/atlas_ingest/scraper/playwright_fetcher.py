"""Headless Chromium render for listing pages that are built by JavaScript.

Optional: only reached when ``render_use_playwright`` is set and the plain
fetch came back as a JavaScript shell.  Needs the ``browser`` extra::

    pip install "atlas-ingest[browser]"
    playwright install chromium
"""

from __future__ import annotations

import logging

from atlas_ingest.scraper.config import BROWSER_HEADERS, USER_AGENT
from atlas_ingest.scraper.http_fetcher import PageFetch

logger = logging.getLogger(__name__)

try:
    from playwright.async_api import Error as PlaywrightError
    from playwright.async_api import async_playwright

    _PLAYWRIGHT_AVAILABLE = True
except ImportError:
    _PLAYWRIGHT_AVAILABLE = False


async def render_in_browser(url: str, *, timeout: float) -> PageFetch:
    """Load *url* in a fresh browser and return the DOM once the network is idle.

    Raises:
        ImportError: If the ``browser`` extra is not installed.
    """
    if not _PLAYWRIGHT_AVAILABLE:
        raise ImportError(
            'render_use_playwright needs the browser extra: pip install "atlas-ingest[browser]"'
        )

    extra_headers = {k: v for k, v in BROWSER_HEADERS.items() if k != "User-Agent"}
    try:
        async with async_playwright() as pw:
            browser = await pw.chromium.launch(headless=True)
            try:
                page = await browser.new_page(user_agent=USER_AGENT, extra_http_headers=extra_headers)
                response = await page.goto(url, timeout=timeout * 1000, wait_until="networkidle")
                return PageFetch(
                    url=url,
                    final_url=page.url,
                    status_code=response.status if response else None,
                    html=await page.content(),
                )
            finally:
                await browser.close()
    except PlaywrightError as exc:
        logger.warning("render: browser could not load %s: %s", url, exc)
        return PageFetch(url=url, final_url=url, error=f"browser: {exc}")
