"""Shared helpers: errors and logging."""
