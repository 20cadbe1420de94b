"""
Module: delivery.py
Description: Value objects passed between the delivery components.

- DeliveryOutcome: what the executor observed for one HTTP attempt
- DeliveryUpdate: the fields persisted on a delivery after an attempt
- EndpointCounters: endpoint health after recording an outcome
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from webhook_delivery.models.webhook import DeliveryStatus


class DeliveryOutcome(BaseModel):
    """Result of a single outbound HTTP attempt."""

    success: bool
    status_code: int = Field(default=0, description="HTTP status, 0 on transport failure")
    response_body: str = ""
    error_message: Optional[str] = None
    elapsed_ms: int = Field(default=0, ge=0)


class DeliveryUpdate(BaseModel):
    """
    Explicit set of delivery fields written after an attempt.

    Applying the same update twice leaves the record unchanged, which keeps
    overlapping sweeps harmless.
    """

    model_config = ConfigDict(use_enum_values=True, validate_assignment=True)

    status: DeliveryStatus
    attempt_count: int = Field(..., ge=0)
    next_retry_at: Optional[datetime] = None
    last_attempt_at: datetime
    delivered_at: Optional[datetime] = None
    response_status_code: Optional[int] = None
    response_body: Optional[str] = None
    response_time_ms: Optional[int] = None
    error_message: Optional[str] = None


class EndpointCounters(BaseModel):
    """Endpoint health as stored after an increment."""

    endpoint_id: str
    success_count: int = 0
    failure_count: int = 0
    is_active: bool = True
    last_triggered_at: Optional[datetime] = None
    last_failed_at: Optional[datetime] = None
