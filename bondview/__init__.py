"""Inspect tables, indexes and rows in process, over a WSGI endpoint or from the command line, and generate unique IDs."""

__version__ = "0.1.0"