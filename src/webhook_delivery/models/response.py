"""
Module: response.py
Description: API response models for the webhook delivery endpoints.

Defines the JSON shapes returned by the delivery router and by the
scheduled sweep worker.

Key Components:
- DeliveryResult: Per-delivery outcome reported by a run
- RunResponse: Envelope returned after a run completes
- ErrorResponse: Body of a 500 response
- DeliveryStatusResponse: Read-back view of a stored delivery
- EndpointHealthResponse: Read-back view of endpoint health (no secret)

Dependencies: pydantic, datetime, typing
Author: BuildDesk Platform Team
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from webhook_delivery.models.webhook import WebhookDelivery, WebhookEndpoint


class DeliveryResult(BaseModel):
    """
    Outcome of processing one delivery.

    Skipped deliveries (missing endpoint, inactive endpoint, unsubscribed
    event) never produce a result. A result with status None means the
    processing itself raised and the stored record may not reflect the attempt.

    Attributes:
        delivery_id: Delivery that was processed
        endpoint_id: Endpoint it targeted
        event_type: Event type delivered
        success: Whether the destination accepted the event
        status: Delivery status after the attempt
        status_code: HTTP status received (0 on transport failure)
        attempt_count: Attempts made including this one
        elapsed_ms: Wall-clock time of the HTTP attempt
        error: Error message when the attempt failed
    """

    delivery_id: str = Field(..., description="Delivery identifier")
    endpoint_id: Optional[str] = Field(default=None, description="Endpoint identifier")
    event_type: Optional[str] = Field(default=None, description="Event type")
    success: bool = Field(..., description="Whether the delivery succeeded")
    status: Optional[str] = Field(default=None, description="Delivery status after the attempt")
    status_code: Optional[int] = Field(default=None, description="HTTP response status")
    attempt_count: Optional[int] = Field(default=None, description="Attempts made so far")
    elapsed_ms: int = Field(default=0, description="Elapsed time of the attempt in ms")
    error: Optional[str] = Field(default=None, description="Failure reason")


class RunResponse(BaseModel):
    """Response returned when a run (single delivery or sweep) completes."""

    success: bool = Field(default=True, description="The run completed")
    processed: int = Field(..., description="Number of deliveries attempted")
    results: List[DeliveryResult] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Response returned when a run could not complete."""

    error: str = Field(..., description="Short error summary")
    details: Optional[str] = Field(default=None, description="Exception text")


class DeliveryStatusResponse(BaseModel):
    """Read-back view of a stored delivery."""

    id: str
    endpoint_id: str
    event_type: str
    status: str
    attempt_count: int
    max_attempts: int
    next_retry_at: Optional[datetime] = None
    last_attempt_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    response_status_code: Optional[int] = None
    response_body: Optional[str] = None
    response_time_ms: Optional[int] = None
    error_message: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_delivery(cls, delivery: WebhookDelivery) -> "DeliveryStatusResponse":
        return cls(**delivery.model_dump(exclude={"payload"}))


class EndpointHealthResponse(BaseModel):
    """Read-back view of endpoint health. Never includes the secret."""

    id: str
    url: str
    is_active: bool
    subscribed_events: List[str]
    success_count: int
    failure_count: int
    last_triggered_at: Optional[datetime] = None
    last_failed_at: Optional[datetime] = None

    @classmethod
    def from_endpoint(cls, endpoint: WebhookEndpoint) -> "EndpointHealthResponse":
        return cls(
            **endpoint.model_dump(
                include={
                    "id", "url", "is_active", "subscribed_events", "success_count",
                    "failure_count", "last_triggered_at", "last_failed_at",
                }
            )
        )
