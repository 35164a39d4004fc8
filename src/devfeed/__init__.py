"""devfeed: developer-content ingestion with per-provider adapters and scoring."""

__version__ = "0.1.0"
