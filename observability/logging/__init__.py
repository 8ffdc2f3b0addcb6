"""Structured logging handlers and formatters."""
