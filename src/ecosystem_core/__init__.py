"""Coordination core: execution spans and graph validation for collaborator calls."""

__version__ = "0.1.0"
