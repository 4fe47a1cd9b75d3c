# parentline/__init__.py
"""Bulk parent messaging with live progress streaming."""

__version__ = "1.0.0"
