"""Shared helpers: HTTP sessions, logging, cancellation."""
