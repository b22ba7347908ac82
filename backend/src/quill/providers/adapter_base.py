"""Stream producer base class and registry.

A producer turns (prompt, connection parameters, cancellation token) into a
lazy sequence of ``StreamChunk``. Concrete producers register under a provider
key; the task manager only ever talks to this interface, so a new back-end is
one more subclass plus its decoder.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Optional, Type

import httpx
from pydantic import BaseModel, ConfigDict, Field

from quill.core.cancellation import CancellationToken
from quill.core.config import Settings
from quill.core.exceptions import (
    TaskAbortedError,
    UnknownProviderError,
    UpstreamConnectionError,
    UpstreamRequestFailedError,
    UpstreamTimeoutError,
)
from quill.core.logging import get_logger

from .events import StreamChunk

logger = get_logger(__name__)

# Statuses that never carry a response body
_BODYLESS_STATUSES = frozenset({204, 205, 304})


class ProviderOptions(BaseModel):
    """Per-request provider options supplied by the caller."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    provider: Optional[str] = None
    model: Optional[str] = None
    base: Optional[str] = None
    api_key: Optional[str] = Field(None, alias="apiKey")


@dataclass(frozen=True)
class ProviderParams:
    """Fully resolved connection parameters for one request."""

    provider: str
    model: str
    base_url: str
    api_key: Optional[str] = None


class BaseStreamProducer:
    """Base class for stream producers.

    Subclasses provide ``resolve_params``, ``build_request`` and
    ``iter_chunks``; the base class owns the HTTP exchange, status checks,
    cancellation and transport error translation.
    """

    provider_key: ClassVar[str] = ""
    display_name: ClassVar[str] = ""

    def __init__(self, params: ProviderParams, client: httpx.AsyncClient):
        self.params = params
        self.client = client

    @classmethod
    def resolve_params(cls, options: ProviderOptions, settings: Settings) -> ProviderParams:
        raise NotImplementedError("Function resolve_params is not implemented.")

    def build_request(self, prompt: str) -> httpx.Request:
        raise NotImplementedError("Function build_request is not implemented.")

    def iter_chunks(self, response: httpx.Response, token: CancellationToken) -> AsyncIterator[StreamChunk]:
        raise NotImplementedError("Function iter_chunks is not implemented.")

    async def stream(self, prompt: str, token: CancellationToken) -> AsyncIterator[StreamChunk]:
        """Yield normalized chunks for ``prompt`` until done, exhausted or cancelled.

        Cancellation ends the sequence quietly. Upstream failures raise
        ``UpstreamError`` subclasses.
        """
        if token.cancelled:
            logger.debug("Token already cancelled; skipping request", extra={"provider": self.provider_key})
            return

        try:
            request = self.build_request(prompt)
            logger.debug(
                "llm.request",
                extra={"provider": self.provider_key, "model": self.params.model, "url": str(request.url)},
            )
            response = await token.guard(self.client.send(request, stream=True))
            try:
                await self._raise_for_status(response, token)
                async with aclosing(self.iter_chunks(response, token)) as chunks:
                    async for chunk in chunks:
                        yield chunk
                        if chunk.done:
                            return
            finally:
                await response.aclose()
        except TaskAbortedError:
            logger.debug("Stream aborted by cancellation", extra={"provider": self.provider_key})
            return
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(self.display_name, str(e) or type(e).__name__) from e
        except httpx.TransportError as e:
            raise UpstreamConnectionError(self.display_name, str(e) or type(e).__name__) from e

    async def _raise_for_status(self, response: httpx.Response, token: CancellationToken) -> None:
        if response.is_success and response.status_code not in _BODYLESS_STATUSES:
            return

        try:
            await token.guard(response.aread())
            message = response.text
        except (httpx.HTTPError, UnicodeDecodeError):
            message = response.reason_phrase

        logger.warning(
            "Upstream request failed",
            extra={"provider": self.provider_key, "status": response.status_code},
        )
        raise UpstreamRequestFailedError(self.display_name, response.status_code, message)


# Registry mapping provider key -> producer class
_PRODUCERS: Dict[str, Type[BaseStreamProducer]] = {}


def register_producer(name: str, cls: Type[BaseStreamProducer]) -> None:
    _PRODUCERS[name] = cls


def get_producer_class(name: str) -> Type[BaseStreamProducer]:
    if name not in _PRODUCERS:
        raise UnknownProviderError(name, available=sorted(_PRODUCERS))
    return _PRODUCERS[name]


def available_providers() -> list[str]:
    return sorted(_PRODUCERS)


def pick(*values: Any) -> Any:
    """Return the first value that is not None."""
    for value in values:
        if value is not None:
            return value
    return None
