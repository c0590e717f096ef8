"""Nexus agent - background location reporting for deployment tracking."""

__version__ = "0.1.0"
