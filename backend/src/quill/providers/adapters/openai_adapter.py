from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Any, Dict

import httpx
from httpx_sse import EventSource, SSEError

from quill.core.cancellation import CancellationToken
from quill.core.config import Settings
from quill.core.exceptions import MalformedPayloadError, MissingCredentialError
from quill.core.logging import get_logger

from ..adapter_base import BaseStreamProducer, ProviderOptions, ProviderParams, pick, register_producer
from ..events import StreamChunk
from ..parsers import parse_event_stream_payload

logger = get_logger(__name__)


class OpenAIStreamProducer(BaseStreamProducer):
    """Remote producer for OpenAI-style ``/chat/completions`` event streams."""

    provider_key = "openai"
    display_name = "OpenAI"

    @classmethod
    def resolve_params(cls, options: ProviderOptions, settings: Settings) -> ProviderParams:
        # ``base`` is only meaningful for local providers; the remote host comes from settings.
        api_key = options.api_key or settings.openai_api_key
        if not api_key:
            raise MissingCredentialError(cls.provider_key, "OPENAI_API_KEY")
        return ProviderParams(
            provider=cls.provider_key,
            model=pick(options.model, settings.openai_model),
            base_url=settings.openai_base_url,
            api_key=api_key,
        )

    def get_chat_endpoint(self) -> str:
        return self.params.base_url.rstrip("/") + "/chat/completions"

    def get_authorization_header(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.params.api_key}"}

    def build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self.params.model,
            "stream": True,
            "messages": [{"role": "user", "content": prompt}],
        }

    def build_request(self, prompt: str) -> httpx.Request:
        headers = {"Content-Type": "application/json", "Accept": "text/event-stream"}
        headers.update(self.get_authorization_header())
        return self.client.build_request("POST", self.get_chat_endpoint(), json=self.build_payload(prompt), headers=headers)

    async def iter_chunks(self, response: httpx.Response, token: CancellationToken) -> AsyncIterator[StreamChunk]:
        event_source = EventSource(response)
        try:
            async with aclosing(token.iterate(event_source.aiter_sse())) as events:
                async for sse in events:
                    # Events without data (comments, bare retry/id fields) carry nothing to decode
                    if not sse.data:
                        continue
                    yield parse_event_stream_payload(sse.data)
        except SSEError as e:
            raise MalformedPayloadError(str(e)) from e


register_producer(OpenAIStreamProducer.provider_key, OpenAIStreamProducer)
