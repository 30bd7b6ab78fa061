"""HTTP client for the remote completion backend."""

import asyncio
from dataclasses import dataclass
from typing import Optional, Dict, Any

import httpx

from ..exceptions import BackendError, BackendTimeoutError
from ..models.delivery import DeliveryConfig
from ..utils.logger import get_app_logger


@dataclass(frozen=True)
class BackendReply:
    """A successful completion: the answer text and the backend's conversation id."""

    answer: str
    conversation_id: Optional[str] = None


class CompletionBackend:
    """
    Blocking-mode chat completion client.

    One ``httpx.AsyncClient`` is shared by every call; each call is bounded
    by the ``request_timeout`` of the configuration snapshot it was given.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None, user: str = "system"):
        """
        Initialize the backend client.

        Args:
            transport: Optional httpx transport, used to plug in mock transports
            user: User identifier reported to the backend
        """
        self.user = user
        self.logger = get_app_logger()
        self._client = httpx.AsyncClient(transport=transport)

    @staticmethod
    def _url(config: DeliveryConfig, path: str) -> str:
        return f"{config.base_url.rstrip('/')}/{path.lstrip('/')}"

    @staticmethod
    def _headers(config: DeliveryConfig) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        }

    async def send(
        self,
        config: DeliveryConfig,
        query: str,
        conversation_id: Optional[str] = None
    ) -> BackendReply:
        """
        Send aggregated content to the backend and wait for the answer.

        Args:
            config: Active delivery configuration snapshot
            query: Text to send
            conversation_id: Backend conversation id from an earlier reply

        Returns:
            BackendReply with the answer text

        Raises:
            BackendTimeoutError: If the call exceeds ``config.request_timeout``
            BackendError: On transport errors, non-200 replies or malformed bodies
        """
        payload: Dict[str, Any] = {
            "inputs": {},
            "query": query,
            "response_mode": "blocking",
            "conversation_id": conversation_id or "",
            "user": self.user,
        }

        try:
            response = await asyncio.wait_for(
                self._client.post(
                    self._url(config, "chat-messages"),
                    json=payload,
                    headers=self._headers(config),
                    timeout=config.request_timeout
                ),
                timeout=config.request_timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise BackendTimeoutError(
                f"Backend request timed out after {config.request_timeout}s"
            ) from e
        except httpx.HTTPError as e:
            raise BackendError(f"Backend request failed: {e}") from e

        if response.status_code != 200:
            raise BackendError(
                f"Backend returned HTTP {response.status_code}: {response.text[:500]}",
                status_code=response.status_code
            )

        try:
            data = response.json()
        except ValueError as e:
            raise BackendError(f"Backend returned invalid JSON: {e}", status_code=200) from e

        if not isinstance(data, dict) or not isinstance(data.get("answer"), str):
            raise BackendError("Backend reply has no answer", status_code=200)

        remote_id = data.get("conversation_id") or None
        self.logger.debug(f"Backend answered ({len(data['answer'])} chars)")
        return BackendReply(answer=data["answer"], conversation_id=remote_id)

    async def check_health(self, config: DeliveryConfig) -> bool:
        """Check the backend's parameters endpoint."""
        try:
            response = await asyncio.wait_for(
                self._client.get(
                    self._url(config, "parameters"),
                    headers=self._headers(config),
                    timeout=config.request_timeout
                ),
                timeout=config.request_timeout
            )
            return response.status_code == 200
        except (asyncio.TimeoutError, httpx.HTTPError) as e:
            self.logger.warning(f"Backend health check failed: {e}")
            return False

    async def close(self):
        """Close the underlying HTTP client."""
        await self._client.aclose()
