"""Assemble partial file-based catalogs from external repository releases."""

__version__ = "0.1.0"
