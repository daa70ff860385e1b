"""Resumable migration of exported user accounts into a unified identity space."""

__version__ = "1.0.0"
