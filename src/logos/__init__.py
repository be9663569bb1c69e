"""Logos CRM backend: relationship timeline and integration services."""

__version__ = "0.1.0"
