# system/__init__.py
"""Portais system configuration."""
