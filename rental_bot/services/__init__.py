"""Rental lifecycle, access control, rate limiting and scheduled housekeeping."""
