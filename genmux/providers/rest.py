from typing import Any, Dict, Optional, Sequence

import httpx

from .base import BaseAIProvider
from ..errors import ProviderCallError
from ..settings import Settings
from ..tools import ToolRegistry
from ..types import ModelInfo

DEFAULT_TIMEOUT = 120.0


class RestProvider(BaseAIProvider):
    """
    Base class for providers reached over plain HTTP instead of a vendor SDK.

    Subclasses set ``BASE_URL`` and ``_auth_headers``. A custom ``transport``
    (e.g. ``httpx.MockTransport``) replaces the network layer.
    """

    BASE_URL: str = ""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        tools: Optional[ToolRegistry] = None,
        settings: Optional[Settings] = None,
        models: Optional[Sequence[ModelInfo]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        super().__init__(api_key, tools=tools, settings=settings, models=models)
        if api_key:
            self.client = httpx.AsyncClient(
                base_url=self.BASE_URL,
                headers=self._auth_headers(api_key),
                timeout=timeout,
                transport=transport,
            )
        else:
            self.client = None

    def _auth_headers(self, api_key: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {api_key}"}

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request and raise ``ProviderCallError`` on a non-2xx status.

        Error bodies are included in the message (truncated) since these
        APIs put the reason there.
        """
        client = self._require_client()
        self.logger.debug("%s %s", method, path)
        response = await client.request(method, path, **kwargs)
        if response.is_success:
            return response

        detail = response.text[:500]
        raise ProviderCallError(
            f"{self.provider_name} {method} {path} failed: {detail}",
            status_code=response.status_code,
        )

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.aclose()
