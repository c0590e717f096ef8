"""Sync module for the tracking API client and its HTTP transport."""

from nexus.sync.api_client import ApiClient
from nexus.sync.transport import HttpTransport, TransportResult

__all__ = ["ApiClient", "HttpTransport", "TransportResult"]
