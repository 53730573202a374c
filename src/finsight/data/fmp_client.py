"""
Async client for the Financial Modeling Prep (FMP) HTTP API.

Every call is a ``GET <base><endpoint>?<params>&apikey=<key>``.  Failures never raise: they come
back as ``{"error": "..."}`` so a bad upstream response becomes a tool result the planner can read
instead of a crashed request.
"""

import logging
from typing import (
    Any,
    Dict,
    Mapping,
)
from urllib.parse import urlencode

import httpx

from finsight.config import settings

logger = logging.getLogger(__name__)


class FMPClient:
    """Thin wrapper around :class:`httpx.AsyncClient` bound to one FMP account."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        public_api_key: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.FMP_API_KEY
        self._base_url = (base_url or settings.FMP_BASE_URL).rstrip("/")
        self._public_api_key = public_api_key or settings.FMP_PUBLIC_API_KEY
        self._client = http_client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.FMP_TIMEOUT_SECONDS
        )

    @staticmethod
    def _clean_params(params: Mapping[str, Any] | None) -> Dict[str, str]:
        # Drop unset values and stringify the rest, the way the provider expects them
        return {k: str(v) for k, v in (params or {}).items() if v is not None}

    def source_url(self, endpoint: str, params: Mapping[str, Any] | None = None) -> str:
        """
        Build the provenance URL shown to users for *endpoint*.

        The public key is embedded instead of the real one so citations can be shared safely.
        """
        query = self._clean_params(params)
        query["apikey"] = self._public_api_key
        return f"{self._base_url}{endpoint}?{urlencode(query)}"

    async def get(self, endpoint: str, params: Mapping[str, Any] | None = None) -> Any:
        """
        Issue a GET request and return the decoded JSON body.

        Parameters
        ----------
        endpoint:
            Path relative to the base URL, e.g. ``"/quote"``.
        params:
            Query parameters.  ``None`` values are skipped.

        Returns
        -------
        Any
            The parsed JSON payload, or ``{"error": "..."}`` when the request failed.
        """
        query = self._clean_params(params)
        query["apikey"] = self._api_key or ""
        url = f"{self._base_url}{endpoint}"
        logger.debug("FMP request: %s %s", endpoint, self._clean_params(params))

        try:
            response = await self._client.get(url, params=query)
        except httpx.HTTPError as exc:
            logger.warning("FMP request to %s failed: %s", endpoint, exc)
            return {"error": f"Failed to fetch from FMP API: {exc}"}

        if not response.is_success:
            logger.warning("FMP request to %s returned status %d", endpoint, response.status_code)
            return {
                "error": (
                    f"Failed to fetch from FMP API: status {response.status_code}: "
                    f"{response.text}"
                )
            }

        try:
            return response.json()
        except ValueError as exc:
            logger.warning("FMP response from %s is not valid JSON: %s", endpoint, exc)
            return {"error": f"Failed to fetch from FMP API: invalid JSON response ({exc})"}

    async def aclose(self) -> None:
        """Release the underlying connection pool."""
        await self._client.aclose()
