"""Constants and tuning parameters for the page render collaborator."""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Content guards
# ---------------------------------------------------------------------------

#: Body length threshold (stripped characters) below which a page is
#: considered a JS-only shell requiring a headless-browser retry.
JS_SHELL_BODY_THRESHOLD: int = 500

#: Characters of HTML returned by the ``/proxy`` debugging route.
PREVIEW_CHARS: int = 5_000

# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

#: User-agent of a current desktop Chrome.  Listing sites behind Cloudflare
#: block obvious bot user-agents outright.
USER_AGENT: str = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)

#: Headers sent with every page request so the fetch looks like a browser
#: navigation arriving from a search result.
BROWSER_HEADERS: dict[str, str] = {
    "User-Agent": USER_AGENT,
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Referer": "https://www.google.com/",
    "Connection": "keep-alive",
}

#: Media-type prefixes of resources that are never handed to the agent.
BINARY_CONTENT_TYPES: tuple[str, ...] = (
    "application/pdf",
    "application/zip",
    "application/octet-stream",
    "application/x-executable",
    "application/vnd.",
    "image/",
    "video/",
    "audio/",
    "font/",
)
