"""
Shared HTTP plumbing for the storefront API clients.
"""

import logging
from typing import Optional, Dict, Any

import httpx

logger = logging.getLogger(__name__)


class RemoteAPIError(Exception):
    """Backend answered with a non-success status."""
    def __init__(self, message: str, status_code: Optional[int], body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class NotFoundError(RemoteAPIError):
    """Requested entity does not exist on the backend."""
    pass


class RateLimitError(RemoteAPIError):
    """Rate limit exceeded."""
    pass


class NetworkError(Exception):
    """Connection, DNS or timeout failure before a response arrived."""
    pass


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class ApiClient:
    """
    Base class of the backend clients.

    Requests are one-shot: errors are raised as typed exceptions and never
    retried here.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        auth: Optional[httpx.Auth] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the HTTP client.

        Args:
            timeout: Request timeout in seconds
            auth: httpx auth handler attached to every request
            transport: Optional transport (tests use ``httpx.MockTransport``)
        """
        self.client = httpx.AsyncClient(timeout=timeout, auth=auth, transport=transport)

    async def close(self):
        """Close HTTP client."""
        await self.client.aclose()

    def _check_credentials(self):
        """Raise ConfigurationError when required settings are absent."""
        pass

    def _get_headers(self) -> Dict[str, str]:
        return {"accept": "application/json"}

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET ``url`` and return the parsed JSON body.

        Args:
            url: Endpoint URL
            params: Query parameters; None values are dropped

        Returns:
            Parsed JSON response

        Raises:
            ConfigurationError: If credentials are missing (no request is made)
            NotFoundError: On 404
            RateLimitError: On 429
            RemoteAPIError: On other error statuses
            NetworkError: On connection failures and timeouts
        """
        self._check_credentials()
        query = {k: v for k, v in (params or {}).items() if v is not None}
        request = self.client.build_request("GET", url, params=query, headers=self._get_headers())
        return await self._send(request)

    async def _post_json(self, url: str, body: Dict[str, Any]) -> Any:
        """
        POST a JSON body to ``url`` and return the parsed JSON response.

        Raises the same errors as ``_get_json``.
        """
        self._check_credentials()
        headers = self._get_headers()
        headers["content-type"] = "application/json"
        request = self.client.build_request("POST", url, json=body, headers=headers)
        return await self._send(request)

    async def _send(self, request: httpx.Request) -> Any:
        logger.info("%s %s", request.method, request.url)

        try:
            response = await self.client.send(request)
        except httpx.RequestError as e:
            logger.error("Request to %s failed: %s", request.url, e)
            raise NetworkError(f"Request error: {str(e)}") from e

        if response.status_code == 429:
            raise RateLimitError("Rate limit exceeded", 429, _response_body(response))

        if response.status_code == 404:
            raise NotFoundError(f"Not found: {request.url.path}", 404, _response_body(response))

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            body = _response_body(e.response)
            logger.error("%s %s -> %s: %s", request.method, request.url, e.response.status_code, body)
            raise RemoteAPIError(
                f"{e.response.status_code}: {e.response.text if e.response.text else 'HTTP error'}",
                status_code=e.response.status_code,
                body=body,
            )

        try:
            return response.json()
        except ValueError as e:
            raise RemoteAPIError(f"Invalid JSON from {request.url}", response.status_code, response.text) from e
