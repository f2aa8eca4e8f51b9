"""Adapters for external coverage tools."""
