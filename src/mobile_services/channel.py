"""
Management channel for the mobile services API.

Implements the resource operation capability over an asynchronous HTTP
client. The channel is pre-bound to the subscription, management host and
client certificate, so callers only supply the verb, path segments, query
and body of each operation.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional, Sequence
from urllib.parse import quote

import httpx

from .errors import RemoteOperationFailed, ResourceNotFound
from .runtime_types import Body, Method
from .settings import Settings

logger = logging.getLogger(__name__)

__all__ = ["ManagementChannel", "SERVICE_ROOT"]

# Path segments between the subscription id and the per-service operations
SERVICE_ROOT = ("services", "mobileservices", "mobileservices")


class ManagementChannel:
    """
    Async HTTP client for the mobile services management API.

    Every request carries the API version and JSON accept headers. Errors
    are mapped to RemoteOperationFailed (ResourceNotFound for 404) with the
    endpoint's own error message when it sends one.
    """

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        """
        Initialize management channel.

        Args:
            settings: Validated settings (subscription, endpoint, certificate)
            client: Pre-built HTTP client (tests pass one with a MockTransport)
        """
        self.settings = settings
        self.base_url = settings.management_endpoint.rstrip("/")
        self._owns_client = client is None

        if client is None:
            cert = None
            if settings.cert_path:
                cert = (settings.cert_path, settings.key_path) if settings.key_path else settings.cert_path
            client = httpx.AsyncClient(
                timeout=httpx.Timeout(settings.http_timeout_s),
                cert=cert,
                headers={"User-Agent": "mobile-services-cli/0.1.0"},
            )
        self.client = client

    def build_url(self, path: Sequence[str]) -> str:
        """Build the absolute URL for service-relative path segments."""
        segments = (self.settings.subscription_id, *SERVICE_ROOT, *path)
        return self.base_url + "/" + "/".join(quote(str(s), safe="") for s in segments)

    async def invoke(
        self,
        method: Method,
        path: Sequence[str],
        *,
        query: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
        body: Body = None,
    ) -> Any:
        """
        Invoke one management operation.

        Returns:
            Parsed JSON for JSON responses, text for other non-empty responses,
            None for empty responses

        Raises:
            ResourceNotFound: If the endpoint answers 404
            RemoteOperationFailed: For any other HTTP or network error
        """
        url = self.build_url(path)
        request_headers = {
            "x-ms-version": self.settings.api_version,
            "Accept": "application/json",
        }
        if headers:
            request_headers.update(headers)

        logger.debug(f"{method} {url} query={dict(query or {})}")

        try:
            response = await self.client.request(
                method,
                url,
                params=dict(query) if query else None,
                headers=request_headers,
                content=body,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            message = _error_message(e.response) or f"Management API error {status} for {method} {url}"
            logger.debug(f"{method} {url} failed with {status}: {message}")
            if status == 404:
                raise ResourceNotFound(message, status_code=status) from e
            raise RemoteOperationFailed(message, status_code=status) from e
        except httpx.RequestError as e:
            raise RemoteOperationFailed(f"Network error calling {method} {url}: {e}") from e

        return _parse_body(response)

    async def aclose(self) -> None:
        """Close the HTTP client if this channel created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> ManagementChannel:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


def _parse_body(response: httpx.Response) -> Any:
    """Decode a response body according to its content type."""
    if not response.content:
        return None

    content_type = response.headers.get("Content-Type", "")
    if "json" in content_type:
        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise RemoteOperationFailed(f"Invalid JSON in response: {e}") from e
    return response.text


def _error_message(response: httpx.Response) -> Optional[str]:
    """Pull the endpoint's error message out of an error response, if any."""
    try:
        payload = response.json()
    except (json.JSONDecodeError, ValueError):
        text = response.text.strip()
        return text or None

    if isinstance(payload, dict):
        for key in ("message", "Message", "error", "code"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
    return None
