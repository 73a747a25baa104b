"""Korea Investment & Securities OpenAPI integration."""

from .client import KISClient, KISCredentials, TokenCache

__all__ = ["KISClient", "KISCredentials", "TokenCache"]
