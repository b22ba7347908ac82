from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Any, Dict

import httpx

from quill.core.cancellation import CancellationToken
from quill.core.config import Settings
from quill.core.logging import get_logger

from ..adapter_base import BaseStreamProducer, ProviderOptions, ProviderParams, pick, register_producer
from ..events import StreamChunk
from ..parsers import parse_ndjson_line

logger = get_logger(__name__)


class OllamaStreamProducer(BaseStreamProducer):
    """Local producer for Ollama's newline-delimited ``/api/generate`` stream."""

    provider_key = "ollama"
    display_name = "Ollama"

    @classmethod
    def resolve_params(cls, options: ProviderOptions, settings: Settings) -> ProviderParams:
        return ProviderParams(
            provider=cls.provider_key,
            model=pick(options.model, settings.ollama_model),
            base_url=pick(options.base, settings.ollama_base),
        )

    def get_generate_endpoint(self) -> httpx.URL:
        # Absolute path: replaces any path already on the base URL
        return httpx.URL(self.params.base_url).join("/api/generate")

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        return {"model": self.params.model, "prompt": prompt, "stream": True}

    def build_request(self, prompt: str) -> httpx.Request:
        return self.client.build_request(
            "POST",
            self.get_generate_endpoint(),
            json=self.build_payload(prompt),
            headers={"Content-Type": "application/json"},
        )

    async def iter_chunks(self, response: httpx.Response, token: CancellationToken) -> AsyncIterator[StreamChunk]:
        buffer = ""
        async with aclosing(token.iterate(response.aiter_text())) as fragments:
            async for text in fragments:
                buffer += text
                *lines, buffer = buffer.split("\n")
                for line in lines:
                    chunk = parse_ndjson_line(line.strip())
                    if chunk is None:
                        continue
                    yield chunk
                    if chunk.done:
                        return

        # Known leniency: a trailing record without a newline is accepted as a
        # final chunk even when it never reports done.
        chunk = parse_ndjson_line(buffer.strip())
        if chunk is not None:
            if not chunk.done:
                logger.warning(
                    "Stream ended without a done marker; flushed trailing record",
                    extra={"provider": self.provider_key, "model": self.params.model},
                )
            yield chunk


register_producer(OllamaStreamProducer.provider_key, OllamaStreamProducer)
