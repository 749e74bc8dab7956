"""Data models for remote deployments."""
