"""Durable record store and its in-memory cache."""
