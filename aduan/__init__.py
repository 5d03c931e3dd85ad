"""Aduan: facilities-complaint dashboard over a spreadsheet-backed endpoint."""

__version__ = "1.0.0"
