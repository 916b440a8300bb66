"""
Remote document store client.

The one remote write every submission ends in: a JSON POST of the payload
to ``{base_url}/{collection}``. Any transport error or non-2xx response
raises ``httpx.HTTPError``; response bodies are not interpreted.
"""

from typing import Any, Dict, Mapping, Optional

import httpx
import structlog

logger = structlog.get_logger(__name__)


class DocumentStoreClient:
    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def write(self, collection: str, payload: Mapping[str, Any]) -> None:
        """Insert ``payload`` into ``collection``. Raises on any failure."""
        response = await self._client.post(
            f"{self.base_url}/{collection}",
            json=dict(payload),
            headers=self._headers(),
        )
        response.raise_for_status()
        logger.debug("Document written", collection=collection, status_code=response.status_code)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
