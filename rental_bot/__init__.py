"""Rental-gated group moderation service core."""

__version__ = "0.1.0"
