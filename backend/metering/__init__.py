"""Metered external-API usage governor."""
