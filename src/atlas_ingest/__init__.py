"""Atlas Ingest: scraped-page forwarding and agent-driven normalization pipeline."""

__version__ = "0.1.0"
