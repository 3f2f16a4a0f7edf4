"""Shared helpers for amounts, dates and logging."""
