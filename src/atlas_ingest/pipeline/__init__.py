"""Raw-page forwarding and pending-work batching.

Sub-modules:
- ``forwarder`` — validates scraped records and pushes them to the upsert webhook
- ``batch``     — fetches a page of pending records and drives each one in turn
"""
