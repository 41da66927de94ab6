"""Shared HTTP plumbing for the marketplace, ERP and notifier connectors.

Every call opens its own aiohttp session with a bounded total timeout and
returns the status and raw body; interpreting the status is left to the
caller. Transport failures and timeouts become UpstreamUnavailable. Nothing
here retries.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from core.errors import UpstreamUnavailable

DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass
class HttpResponse:
    """Status code and body of a completed request."""
    status: int
    text: str
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Decode the body as JSON; an undecodable body is an upstream failure."""
        if not self.text:
            return {}
        try:
            return json.loads(self.text)
        except json.JSONDecodeError as e:
            raise UpstreamUnavailable(
                f"Invalid JSON from {self.url}: {e}",
                self.status,
                self.text,
            ) from e


async def request(
    method: str,
    url: str,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, str]] = None,
    json_body: Optional[Any] = None,
    data: Optional[Any] = None,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> HttpResponse:
    """Perform one HTTP request.

    Args:
        method: HTTP method
        url: Absolute URL
        headers: Request headers
        params: Query parameters
        json_body: Body serialized as JSON
        data: Raw body (used for XML uploads)
        timeout_seconds: Total timeout for the call

    Returns:
        HttpResponse with the status and body text

    Raises:
        UpstreamUnavailable: Connection error or timeout
    """
    timeout = aiohttp.ClientTimeout(total=timeout_seconds)
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.request(
                method,
                url,
                headers=headers,
                params=params,
                json=json_body,
                data=data,
            ) as response:
                text = await response.text()
                return HttpResponse(status=response.status, text=text, url=url)
    except asyncio.TimeoutError as e:
        raise UpstreamUnavailable(f"Timed out after {timeout_seconds}s: {method} {url}") from e
    except aiohttp.ClientError as e:
        raise UpstreamUnavailable(f"Request failed: {method} {url}: {e}") from e


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
