"""Completion relay: buffered replies and streamed byte pass-through."""

import time
from typing import Any, AsyncIterator, Dict, List

import httpx

from serenity.app.core.logging import get_logger
from serenity.app.providers.base import BaseProvider

logger = get_logger(__name__)


def extract_reply(data: Any) -> str:
    """First choice's message content, or "" when the response has none."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content if isinstance(content, str) else ""


class StreamPipe:
    """One-way pipe from an open upstream response to the downstream body.

    Iterating yields the upstream body chunks unmodified, in order. The pipe
    closes the upstream response when the upstream ends, when it fails
    mid-stream, or when the consumer stops early (disconnect cancels the
    iteration). Closing is idempotent.
    """

    def __init__(self, response: httpx.Response):
        self._response = response
        self._closed = False
        self.bytes_relayed = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aiter__(self) -> AsyncIterator[bytes]:
        started = time.perf_counter()
        try:
            async for chunk in self._response.aiter_bytes():
                self.bytes_relayed += len(chunk)
                yield chunk
        except httpx.HTTPError as e:
            # Headers are already sent, so the body just ends here.
            logger.warning(
                f"Upstream stream failed: {e}",
                extra={"error_type": type(e).__name__, "bytes_relayed": self.bytes_relayed},
            )
        finally:
            await self.aclose()
            logger.debug(
                "Stream relay finished",
                extra={
                    "bytes_relayed": self.bytes_relayed,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._response.aclose()


class CompletionRelay:
    """Sends the assembled messages to the completion API.

    Model, temperature and max_tokens are fixed at construction.
    """

    def __init__(
        self,
        provider: BaseProvider,
        model: str,
        temperature: float,
        max_tokens: int,
    ):
        self.provider = provider
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    def build_payload(self, messages: List[Dict[str, str]], stream: bool) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": stream,
        }

    async def complete(self, messages: List[Dict[str, str]], stream: bool = False) -> str | StreamPipe:
        """Run the completion in buffered or streamed mode.

        Args:
            messages: Assembled chat messages
            stream: Relay the upstream event stream instead of waiting for the
                full reply

        Returns:
            The reply text in buffered mode, a ``StreamPipe`` in streamed mode

        Raises:
            UpstreamError: If the upstream answers non-2xx (both modes)
            httpx.HTTPError: On transport failures before the body starts
        """
        payload = self.build_payload(messages, stream)
        started = time.perf_counter()

        if stream:
            response = await self.provider.open_stream(payload)
            logger.info(
                "Upstream stream opened",
                extra={
                    "upstream_status": response.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )
            return StreamPipe(response)

        data = await self.provider.chat_completion(payload)
        logger.info(
            "Upstream completion received",
            extra={"duration_ms": round((time.perf_counter() - started) * 1000, 2)},
        )
        return extract_reply(data)
