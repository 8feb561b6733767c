"""Minimalist, idempotent lifecycle management for one local VM."""

__version__ = '0.1.0'
