"""Inquiry spreadsheet ingestion: parser engine, ingestion controller and submission."""

__version__ = "0.1.0"
