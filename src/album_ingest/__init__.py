"""Album ingest: asynchronous verification and thumbnailing of uploaded album content."""

__version__ = "0.1.0"
