"""
Module: push.py
Description: Push delivery of a webhook event to a subscriber endpoint.

Implements a single signed HTTP POST with a hard timeout. Every outcome,
including network errors and timeouts, is captured as a DeliveryOutcome;
the executor never retries on its own.
"""

import asyncio
import json
import time
from datetime import datetime
from typing import Any, Dict, Optional

import httpx

from webhook_delivery.delivery.signing import sign
from webhook_delivery.models.delivery import DeliveryOutcome
from webhook_delivery.models.webhook import WebhookDelivery, WebhookEndpoint
from webhook_delivery.utils.clock import isoformat_z, utcnow
from webhook_delivery.utils.logger import get_logger

logger = get_logger(__name__)

SIGNATURE_HEADER = "X-Webhook-Signature"
ID_HEADER = "X-Webhook-Id"
EVENT_HEADER = "X-Webhook-Event"
TIMESTAMP_HEADER = "X-Webhook-Timestamp"

RESERVED_HEADERS = frozenset(
    name.lower() for name in (SIGNATURE_HEADER, ID_HEADER, EVENT_HEADER, TIMESTAMP_HEADER)
)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_RESPONSE_BODY_LIMIT = 1000
DEFAULT_USER_AGENT = "BuildDesk-Webhooks/1.0"


def build_wire_payload(delivery: WebhookDelivery, created_at: datetime) -> Dict[str, Any]:
    """Envelope received by subscribers; the event payload is nested under data."""
    return {
        "id": delivery.id,
        "event": delivery.event_type,
        "created_at": isoformat_z(created_at),
        "data": delivery.payload,
    }


def serialize_payload(wire_payload: Dict[str, Any]) -> bytes:
    """Serialize the envelope once; the result is both body and signing input."""
    return json.dumps(wire_payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def build_headers(
    delivery: WebhookDelivery,
    endpoint: WebhookEndpoint,
    signature: str,
    timestamp: str,
    user_agent: str = DEFAULT_USER_AGENT,
) -> Dict[str, str]:
    """
    Assemble request headers.

    Custom headers may replace Content-Type and User-Agent or add new
    headers. Reserved X-Webhook-* headers cannot be overridden.
    """
    headers = {
        "Content-Type": "application/json",
        "User-Agent": user_agent,
    }

    for name, value in (endpoint.custom_headers or {}).items():
        if name.lower() in RESERVED_HEADERS:
            logger.warning(
                "Ignoring custom header that overrides a reserved header",
                endpoint_id=endpoint.id,
                header=name
            )
            continue
        for existing in [k for k in headers if k.lower() == name.lower()]:
            del headers[existing]
        headers[name] = value

    headers[SIGNATURE_HEADER] = signature
    headers[ID_HEADER] = delivery.id
    headers[EVENT_HEADER] = delivery.event_type
    headers[TIMESTAMP_HEADER] = timestamp
    return headers


class PushDeliveryClient:
    """
    HTTP client for pushing webhook deliveries to subscriber endpoints.

    Each call to execute() performs exactly one POST bounded by a hard
    total timeout, and reports what happened without raising.
    """

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        response_body_limit: int = DEFAULT_RESPONSE_BODY_LIMIT,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize push delivery client.

        Args:
            timeout_seconds: Hard timeout for a whole attempt
            response_body_limit: Maximum response body characters kept
            user_agent: User-Agent header value
            transport: Optional httpx transport (used for testing)

        Raises:
            ValueError: If timeout_seconds is not positive
        """
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

        self.timeout_seconds = timeout_seconds
        self.response_body_limit = response_body_limit
        self.user_agent = user_agent
        self.transport = transport

    async def execute(self, delivery: WebhookDelivery, endpoint: WebhookEndpoint) -> DeliveryOutcome:
        """
        Deliver one event to its endpoint via HTTP POST.

        Args:
            delivery: Delivery to send
            endpoint: Destination endpoint

        Returns:
            DeliveryOutcome describing the attempt
        """
        created_at = utcnow()
        body = serialize_payload(build_wire_payload(delivery, created_at))
        headers = build_headers(
            delivery,
            endpoint,
            signature=sign(body, endpoint.secret),
            timestamp=isoformat_z(created_at),
            user_agent=self.user_agent,
        )

        logger.debug(
            "Attempting webhook delivery",
            delivery_id=delivery.id,
            endpoint_id=endpoint.id,
            event_type=delivery.event_type,
            url=endpoint.url
        )

        timeout_seconds = self.effective_timeout(endpoint)
        started = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self._post(endpoint.url, body, headers, timeout_seconds),
                timeout=timeout_seconds,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            elapsed_ms = self._elapsed_ms(started)
            message = str(e) or f"Request timed out after {timeout_seconds:g}s"
            logger.warning(
                "Webhook delivery timeout",
                delivery_id=delivery.id,
                endpoint_id=endpoint.id,
                elapsed_ms=elapsed_ms
            )
            return DeliveryOutcome(success=False, status_code=0, error_message=message, elapsed_ms=elapsed_ms)

        except httpx.HTTPError as e:
            elapsed_ms = self._elapsed_ms(started)
            logger.warning(
                "Webhook delivery network error",
                delivery_id=delivery.id,
                endpoint_id=endpoint.id,
                error=str(e),
                error_type=type(e).__name__
            )
            return DeliveryOutcome(
                success=False,
                status_code=0,
                error_message=str(e) or type(e).__name__,
                elapsed_ms=elapsed_ms,
            )

        except Exception as e:
            elapsed_ms = self._elapsed_ms(started)
            logger.error(
                "Webhook delivery failed",
                delivery_id=delivery.id,
                endpoint_id=endpoint.id,
                error=str(e),
                error_type=type(e).__name__
            )
            return DeliveryOutcome(
                success=False,
                status_code=0,
                error_message=str(e) or type(e).__name__,
                elapsed_ms=elapsed_ms,
            )

        elapsed_ms = self._elapsed_ms(started)
        response_body = response.text[:self.response_body_limit]

        if response.is_success:
            logger.info(
                "Webhook delivered successfully",
                delivery_id=delivery.id,
                endpoint_id=endpoint.id,
                status_code=response.status_code,
                elapsed_ms=elapsed_ms
            )
            return DeliveryOutcome(
                success=True,
                status_code=response.status_code,
                response_body=response_body,
                elapsed_ms=elapsed_ms,
            )

        logger.warning(
            "Webhook delivery HTTP error",
            delivery_id=delivery.id,
            endpoint_id=endpoint.id,
            status_code=response.status_code,
            elapsed_ms=elapsed_ms
        )
        return DeliveryOutcome(
            success=False,
            status_code=response.status_code,
            response_body=response_body,
            error_message=f"HTTP {response.status_code}: {response.reason_phrase}",
            elapsed_ms=elapsed_ms,
        )

    def effective_timeout(self, endpoint: WebhookEndpoint) -> float:
        """Endpoint timeout when set, never above the client's hard limit."""
        if endpoint.timeout_seconds is None:
            return self.timeout_seconds
        return min(float(endpoint.timeout_seconds), self.timeout_seconds)

    async def _post(self, url: str, body: bytes, headers: Dict[str, str], timeout_seconds: float) -> httpx.Response:
        async with httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds), transport=self.transport) as client:
            return await client.post(url, content=body, headers=headers)

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)
