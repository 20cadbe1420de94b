"""
Module: webhook.py
Description: Webhook endpoint and delivery data models.

Defines the two records the delivery subsystem reads and writes: the
registered destination (WebhookEndpoint) and the queued attempt to deliver
one event to one destination (WebhookDelivery).

Key Components:
- DeliveryStatus: Enum for delivery lifecycle states
- WebhookEndpoint: Destination URL, subscriptions, secret, and health counters
- WebhookDelivery: Queued event with attempt bookkeeping and last response

Dependencies: pydantic, datetime, typing, uuid, config.settings
Author: BuildDesk Platform Team
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from webhook_delivery.config.settings import settings
from webhook_delivery.utils.clock import utcnow


class DeliveryStatus(str, Enum):
    """Delivery lifecycle states. DELIVERED and FAILED_PERMANENT are terminal."""

    PENDING = "pending"
    FAILED = "failed"
    DELIVERED = "delivered"
    FAILED_PERMANENT = "failed_permanent"


RETRYABLE_STATUSES = (DeliveryStatus.PENDING, DeliveryStatus.FAILED)

DEFAULT_MAX_ATTEMPTS = 5


class WebhookEndpoint(BaseModel):
    """
    Registered webhook destination.

    The secret is used only to sign outbound bodies. It is excluded from
    repr() so it cannot leak through log lines or tracebacks.

    Attributes:
        id: Opaque endpoint identifier
        url: Destination URL (http or https)
        secret: Shared signing key
        description: Optional owner-facing note
        is_active: Gates every delivery attempt
        subscribed_events: Exact names, "*", or "prefix.*" patterns
        custom_headers: Extra headers merged into each request
        timeout_seconds: Per-endpoint attempt timeout, capped by the client's
        retry_attempts: Attempt ceiling for deliveries created for this endpoint
        success_count: Total successful deliveries
        failure_count: Consecutive failed deliveries (reset on success)
        last_triggered_at: Time of the most recent attempt
        last_failed_at: Time of the most recent failed attempt
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(..., min_length=1, description="Endpoint identifier")
    url: str = Field(..., description="Destination URL")
    secret: str = Field(..., min_length=1, repr=False, description="Signing secret")
    description: Optional[str] = Field(default=None, description="Owner-facing description")
    is_active: bool = Field(default=True, description="Whether deliveries are attempted")
    subscribed_events: List[str] = Field(
        default_factory=list,
        description="Event patterns this endpoint receives"
    )
    custom_headers: Dict[str, str] = Field(
        default_factory=dict,
        description="Headers added to every delivery request"
    )
    timeout_seconds: Optional[int] = Field(
        default=None,
        ge=1,
        le=30,
        description="Attempt timeout in seconds; None uses the client default"
    )
    retry_attempts: Optional[int] = Field(
        default=None,
        ge=1,
        description="max_attempts for new deliveries; None uses settings.default_max_attempts"
    )
    success_count: int = Field(default=0, ge=0)
    failure_count: int = Field(default=0, ge=0)
    last_triggered_at: Optional[datetime] = None
    last_failed_at: Optional[datetime] = None

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Only HTTP(S) destinations are deliverable."""
        if not v or not v.startswith(('http://', 'https://')):
            raise ValueError("url must be a valid HTTP/HTTPS URL")
        return v


class WebhookDelivery(BaseModel):
    """
    A single queued attempt to deliver one event to one endpoint.

    Producers insert these in the pending state with attempt_count 0.
    The delivery subsystem only ever updates them; it never deletes one.
    """

    model_config = ConfigDict(validate_assignment=True, use_enum_values=True)

    id: str = Field(..., min_length=1, description="Delivery identifier")
    endpoint_id: str = Field(..., min_length=1, description="Owning endpoint identifier")
    event_type: str = Field(..., min_length=1, description="Dot-namespaced event type")
    payload: Any = Field(default=None, description="Opaque event data")
    attempt_count: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    status: DeliveryStatus = Field(default=DeliveryStatus.PENDING, validate_default=True)
    next_retry_at: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    response_status_code: Optional[int] = None
    response_body: Optional[str] = None
    response_time_ms: Optional[int] = None
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def create(
        cls,
        endpoint_id: str,
        event_type: str,
        payload: Any,
        max_attempts: Optional[int] = None,
    ) -> "WebhookDelivery":
        """
        Build a new pending delivery with a generated id.

        max_attempts defaults to settings.default_max_attempts.
        """
        if max_attempts is None:
            max_attempts = settings.default_max_attempts
        return cls(
            id=str(uuid4()),
            endpoint_id=endpoint_id,
            event_type=event_type,
            payload=payload,
            max_attempts=max_attempts,
        )

    @classmethod
    def for_endpoint(cls, endpoint: WebhookEndpoint, event_type: str, payload: Any) -> "WebhookDelivery":
        """Build a pending delivery honoring the endpoint's retry_attempts."""
        return cls.create(endpoint.id, event_type, payload, max_attempts=endpoint.retry_attempts)

    def is_due(self, now: datetime) -> bool:
        """Whether a sweep at `now` should select this delivery."""
        if self.status not in RETRYABLE_STATUSES:
            return False
        if self.next_retry_at is not None and self.next_retry_at > now:
            return False
        return self.attempt_count < self.max_attempts
