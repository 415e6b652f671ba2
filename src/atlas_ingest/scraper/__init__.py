"""Page render collaborator.

Turns a URL into HTML for the ``render_page`` and ``extract_listings``
tools and the ``/proxy`` debugging route.

Sub-modules:
- ``config``             — constants and tuning parameters
- ``http_fetcher``       — ``fetch_page``: browser-header GET, error pages kept
- ``playwright_fetcher`` — ``render_in_browser``: headless Chromium for JavaScript shells
- ``renderer``           — ``Renderer.fetch`` and the strict ``Renderer.render``
"""
