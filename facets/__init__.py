"""Faceted filtering engine with tri-state marks and compact state encoding."""

__version__ = "0.4.0"
