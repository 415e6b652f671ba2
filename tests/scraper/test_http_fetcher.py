"""Unit tests for the plain HTTP page fetch, with respx standing in for the sites."""

from __future__ import annotations

import httpx
import pytest
import respx

from atlas_ingest.scraper.http_fetcher import PageFetch, fetch_page, is_binary

LISTING_PAGE = "<html><body>" + ("3 bed flat, 120 m2 " * 40) + "</body></html>"
CHALLENGE_PAGE = "<html><title>Just a moment...</title><body>cf-challenge</body></html>"


@pytest.mark.parametrize(
    ("content_type", "expected"),
    [
        ("application/pdf", True),
        ("image/webp", True),
        ("application/vnd.ms-excel", True),
        ("text/html; charset=utf-8", False),
        ("TEXT/HTML", False),
        ("", False),
    ],
)
def test_is_binary(content_type: str, expected: bool) -> None:
    assert is_binary(content_type) is expected


class TestPageFetch:
    def test_error_status_is_a_failure_but_keeps_the_body(self) -> None:
        page = PageFetch(url="u", final_url="u", status_code=403, html=CHALLENGE_PAGE)
        assert page.ok is False
        assert page.is_shell is False
        assert page.failure() == "HTTP 403"

    def test_thin_success_is_a_shell(self) -> None:
        page = PageFetch(url="u", final_url="u", status_code=200, html="<div id='app'></div>")
        assert page.is_shell is True
        assert page.failure() is None

    def test_transport_error_wins(self) -> None:
        assert PageFetch(url="u", final_url="u", error="timeout").failure() == "timeout"


@pytest.mark.asyncio
class TestFetchPage:
    async def test_listing_page(self, http_client: httpx.AsyncClient) -> None:
        with respx.mock:
            route = respx.get("https://example.com/flat/1").mock(
                return_value=httpx.Response(
                    200, text=LISTING_PAGE, headers={"content-type": "text/html; charset=utf-8"}
                )
            )
            page = await fetch_page(http_client, "https://example.com/flat/1", timeout=10)

        assert page.ok
        assert page.html == LISTING_PAGE
        assert page.final_url == "https://example.com/flat/1"
        request = route.calls.last.request
        assert "Chrome/" in request.headers["user-agent"]
        assert request.headers["referer"] == "https://www.google.com/"

    async def test_follows_redirects(self, http_client: httpx.AsyncClient) -> None:
        with respx.mock:
            respx.get("https://example.com/old").mock(
                return_value=httpx.Response(301, headers={"location": "https://example.com/new"})
            )
            respx.get("https://example.com/new").mock(
                return_value=httpx.Response(200, text=LISTING_PAGE, headers={"content-type": "text/html"})
            )
            page = await fetch_page(http_client, "https://example.com/old", timeout=10)

        assert page.status_code == 200
        assert page.final_url == "https://example.com/new"

    async def test_blocked_page_body_is_kept(self, http_client: httpx.AsyncClient) -> None:
        with respx.mock:
            respx.get("https://blocked.test/").mock(
                return_value=httpx.Response(
                    403, text=CHALLENGE_PAGE, headers={"content-type": "text/html"}
                )
            )
            page = await fetch_page(http_client, "https://blocked.test/", timeout=10)

        assert page.status_code == 403
        assert page.html == CHALLENGE_PAGE
        assert page.error is None

    async def test_binary_body_is_dropped(self, http_client: httpx.AsyncClient) -> None:
        with respx.mock:
            respx.get("https://example.com/plan.pdf").mock(
                return_value=httpx.Response(
                    200, content=b"%PDF-1.4", headers={"content-type": "application/pdf"}
                )
            )
            page = await fetch_page(http_client, "https://example.com/plan.pdf", timeout=10)

        assert page.html is None
        assert "binary" in (page.error or "")

    async def test_timeout(self, http_client: httpx.AsyncClient) -> None:
        with respx.mock:
            respx.get("https://slow.test/").mock(side_effect=httpx.ReadTimeout("slow"))
            page = await fetch_page(http_client, "https://slow.test/", timeout=5)

        assert page.status_code is None
        assert page.error == "timeout"

    async def test_unreachable_host(self, http_client: httpx.AsyncClient) -> None:
        with respx.mock:
            respx.get("https://down.test/").mock(side_effect=httpx.ConnectError("refused"))
            page = await fetch_page(http_client, "https://down.test/", timeout=5)

        assert page.html is None
        assert (page.error or "").startswith("ConnectError")
