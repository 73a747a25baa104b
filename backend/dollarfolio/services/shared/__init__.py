"""Shared utilities used across services."""

from dollarfolio.services.shared.http_client import HTTPClient, HTTPClientError

__all__ = ["HTTPClient", "HTTPClientError"]
