"""Configuration package for Atlas Ingest.

Re-exports the settings symbols so that callers can write::

    from atlas_ingest.config import Settings, get_settings
"""

from __future__ import annotations

from atlas_ingest.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
