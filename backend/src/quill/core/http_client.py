"""HTTP client management for Quill.

One pooled ``httpx.AsyncClient`` is shared by every stream producer for the
lifetime of the bridge process.
"""

import httpx

from .config import Settings, get_settings_instance
from .logging import get_logger

logger = get_logger(__name__)


def build_timeout(settings: Settings) -> httpx.Timeout:
    """Timeouts for streaming calls; unset phases are unbounded."""
    return httpx.Timeout(
        connect=settings.llm_connect_timeout,
        read=settings.llm_streaming_read_timeout,
        write=settings.llm_connect_timeout,
        pool=settings.llm_connect_timeout,
    )


class HTTPClientManager:
    """Creates the shared client on first use and closes it on shutdown."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._client: httpx.AsyncClient | None = None
        self._settings = settings or get_settings_instance()

    async def get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            logger.debug(
                "Creating pooled HTTP client",
                extra={
                    "connect_timeout": self._settings.llm_connect_timeout,
                    "read_timeout": self._settings.llm_streaming_read_timeout,
                },
            )
            self._client = httpx.AsyncClient(
                # Each running task holds one streaming connection
                limits=httpx.Limits(max_keepalive_connections=10, max_connections=50, keepalive_expiry=30.0),
                timeout=build_timeout(self._settings),
                follow_redirects=True,
                headers={"User-Agent": f"Quill/{self._settings.version}"},
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            logger.debug("Closing pooled HTTP client")
            await self._client.aclose()
            self._client = None
