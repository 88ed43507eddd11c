"""
HTTP Client Manager with Connection Pooling

Provides a shared, reusable httpx client for external API calls
(PhantomBuster launches and container polling happen many times per hour,
so connections are kept alive between calls).

Usage:
    from app.shared.utils.http_client import http_client_manager

    client = http_client_manager.get_client()
    response = await client.get("https://api.example.com/data")
"""
import logging
from typing import Optional, Dict, Any

import httpx

logger = logging.getLogger("http_client")


# Default configuration
DEFAULT_TIMEOUT = 30.0
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_MAX_CONNECTIONS = 50
DEFAULT_MAX_KEEPALIVE_CONNECTIONS = 10
DEFAULT_KEEPALIVE_EXPIRY = 30.0  # seconds


class HTTPClientManager:
    """
    Singleton HTTP client manager with connection pooling.

    - Lazy initialization (client created on first use)
    - Closed from the FastAPI lifespan on shutdown
    """

    _instance: Optional['HTTPClientManager'] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._client = None
        return cls._instance

    def _create_client(self) -> httpx.AsyncClient:
        """Create a new HTTP client with the pool limits above."""
        timeout = httpx.Timeout(timeout=DEFAULT_TIMEOUT, connect=DEFAULT_CONNECT_TIMEOUT)
        limits = httpx.Limits(
            max_connections=DEFAULT_MAX_CONNECTIONS,
            max_keepalive_connections=DEFAULT_MAX_KEEPALIVE_CONNECTIONS,
            keepalive_expiry=DEFAULT_KEEPALIVE_EXPIRY
        )
        return httpx.AsyncClient(timeout=timeout, limits=limits, follow_redirects=True)

    def get_client(self) -> httpx.AsyncClient:
        """Get the shared HTTP client, creating it on first access."""
        if self._client is None or self._client.is_closed:
            self._client = self._create_client()
            logger.info("HTTP client created with connection pooling")
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release all connections."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("HTTP client closed, connections released")

    def get_status(self) -> Dict[str, Any]:
        """Get current client status for monitoring."""
        return {"active": self._client is not None and not self._client.is_closed}


# Singleton instance
http_client_manager = HTTPClientManager()


# ============================================
# FastAPI LIFECYCLE HOOKS
# ============================================

async def startup_http_client():
    """Pre-warm the connection pool during startup."""
    http_client_manager.get_client()
    logger.info("HTTP client pre-warmed during startup")


async def shutdown_http_client():
    """Close pooled connections during shutdown."""
    await http_client_manager.close()
