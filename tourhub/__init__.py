"""Tourhub core: document store, query building, resources, auth and reports."""

__version__ = "1.0.0"
