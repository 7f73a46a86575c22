from abc import ABC, abstractmethod
from typing import Any, Dict

import httpx


class BaseProvider(ABC):
    """Base class for upstream model APIs.

    Providers share the application's ``httpx.AsyncClient`` so completion and
    moderation calls reuse pooled connections.
    """

    def __init__(self, base_url: str, api_key: str, http_client: httpx.AsyncClient):
        """Initialize the provider.

        Args:
            base_url: The API base URL
            api_key: The API key for authentication
            http_client: Shared HTTP client
        """
        self._http_client = http_client
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.headers = self._build_headers()

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._http_client

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

    def _get_endpoint_url(self, endpoint: str) -> str:
        """Build full URL for an API endpoint (e.g. "/chat/completions")."""
        return f"{self.base_url}{endpoint}"

    @abstractmethod
    async def chat_completion(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Send a non-streaming chat completion request.

        Returns:
            The JSON response from the API
        """

    @abstractmethod
    async def open_stream(self, payload: Dict[str, Any]) -> httpx.Response:
        """Start a streaming chat completion request.

        Returns:
            The upstream response with its body still unread. The caller owns
            it and must close it.
        """

    @abstractmethod
    async def moderate(self, text: str) -> Dict[str, Any]:
        """Classify ``text`` with the moderation endpoint."""
