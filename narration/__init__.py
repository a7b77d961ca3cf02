"""Resilient chunked narration audio for blog articles."""

__version__ = "0.1.0"
