"""Multicast push notification sender with retry logic."""

import asyncio
import logging
from typing import Any

import httpx

from homequest.core.config import constants, settings
from homequest.models.service_models import MulticastResult


logger = logging.getLogger(__name__)


# HTTP status code constants for error handling
HTTP_CLIENT_ERROR_START = 400
HTTP_CLIENT_ERROR_END = 500


def _parse_multicast_response(tokens: list[str], data: dict[str, Any]) -> MulticastResult:
    """Read per-token outcomes from the provider response.

    The provider returns {"responses": [{"success": bool, ...}, ...]} in the
    same order as the submitted tokens.
    """
    responses = data.get("responses") or []
    invalid_tokens = [
        token for token, outcome in zip(tokens, responses, strict=False) if not outcome.get("success", False)
    ]
    success_count = data.get("successCount", len(tokens) - len(invalid_tokens))
    failure_count = data.get("failureCount", len(invalid_tokens))
    return MulticastResult(
        success=True,
        success_count=success_count,
        failure_count=failure_count,
        invalid_tokens=invalid_tokens,
    )


class PushSender:
    """Sends one notification to many device tokens through the push provider."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        self.base_url = (base_url or settings.push_base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.push_api_key
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    async def send_multicast(
        self,
        *,
        tokens: list[str],
        title: str,
        body: str,
        data: dict[str, str] | None = None,
    ) -> MulticastResult:
        """Send a notification to every token in one request, retrying server and network errors."""
        if not tokens:
            return MulticastResult(success=True)

        url = f"{self.base_url}/v1/messages:sendMulticast"
        payload = {
            "tokens": tokens,
            "notification": {"title": title, "body": body},
            "data": data or {},
        }
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS) as client:
                    response = await client.post(url, json=payload, headers=headers)

                    if response.is_success:
                        return _parse_multicast_response(tokens, response.json())

                    if HTTP_CLIENT_ERROR_START <= response.status_code < HTTP_CLIENT_ERROR_END:
                        return MulticastResult(
                            success=False,
                            failure_count=len(tokens),
                            error=f"Client error: {response.text}",
                        )

                    raise httpx.HTTPStatusError(
                        f"Server error: {response.status_code}", request=response.request, response=response
                    )
            except httpx.HTTPStatusError as e:
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(self.retry_delay * (2**attempt))
                else:
                    return MulticastResult(success=False, failure_count=len(tokens), error=str(e))
            except httpx.HTTPError as e:
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(self.retry_delay * (2**attempt))
                else:
                    return MulticastResult(
                        success=False,
                        failure_count=len(tokens),
                        error=f"Failed after retries: {e!s}",
                    )

        return MulticastResult(success=False, failure_count=len(tokens), error="Max retries exceeded")


# Default sender used by the running service
push_sender = PushSender()
