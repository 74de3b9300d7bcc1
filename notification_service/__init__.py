"""Notification dispatch service for role-based school administration."""

__version__ = "0.1.0"
