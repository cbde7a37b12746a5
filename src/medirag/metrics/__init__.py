"""Logging, metrics and query logging."""
