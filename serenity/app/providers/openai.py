"""OpenAI API provider.

Compatible with the OpenAI API and other endpoints exposing the same
``/chat/completions`` and ``/moderations`` routes.
"""

from typing import Any, Dict

import httpx

from serenity.app.exceptions import UpstreamError
from serenity.app.providers.base import BaseProvider


class OpenAIProvider(BaseProvider):
    """OpenAI provider on top of the shared HTTP client.

    Any non-2xx answer raises ``UpstreamError`` carrying the upstream status
    and the raw response text. Transport errors (``httpx.HTTPError``) are left
    to the caller.
    """

    async def chat_completion(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Send a non-streaming chat completion request.

        Args:
            payload: The request payload (model, messages, temperature, etc.)

        Returns:
            The JSON response from the API

        Raises:
            UpstreamError: If the API returns an error status
        """
        url = self._get_endpoint_url("/chat/completions")
        resp = await self._http_client.post(url, headers=self.headers, json=payload)
        if not resp.is_success:
            raise UpstreamError(resp.status_code, resp.text)
        return resp.json()

    async def open_stream(self, payload: Dict[str, Any]) -> httpx.Response:
        """Send a streaming chat completion request.

        The error body of a failed request is read and the connection
        released before raising.

        Raises:
            UpstreamError: If the API returns an error status
        """
        url = self._get_endpoint_url("/chat/completions")
        payload = {**payload, "stream": True}
        request = self._http_client.build_request(
            "POST", url, headers=self.headers, json=payload
        )
        resp = await self._http_client.send(request, stream=True)
        if not resp.is_success:
            try:
                await resp.aread()
                body = resp.text
            finally:
                await resp.aclose()
            raise UpstreamError(resp.status_code, body)
        return resp

    async def moderate(self, text: str) -> Dict[str, Any]:
        """Classify ``text`` with ``POST /moderations``.

        Raises:
            UpstreamError: If the API returns an error status
            ValueError: If the body is not JSON
        """
        url = self._get_endpoint_url("/moderations")
        resp = await self._http_client.post(url, headers=self.headers, json={"input": text})
        if not resp.is_success:
            raise UpstreamError(resp.status_code, resp.text)
        return resp.json()
