"""Event import pipeline: turn event URLs into stored, deduplicated events."""

__version__ = "0.1.0"
