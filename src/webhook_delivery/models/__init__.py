"""
Module: models
Description: Package initialization for Pydantic data models.

This package contains all data models used by the webhook delivery service:
- WebhookEndpoint, WebhookDelivery: stored records
- DeliveryOutcome, DeliveryUpdate, EndpointCounters: values passed between components
- Request and response models for the HTTP interface

All models are exported here for convenient importing.
"""

from .delivery import DeliveryOutcome, DeliveryUpdate, EndpointCounters
from .request import RunDeliveryRequest, EndpointTestRequest
from .response import (
    DeliveryResult,
    DeliveryStatusResponse,
    EndpointHealthResponse,
    ErrorResponse,
    RunResponse,
)
from .webhook import DeliveryStatus, WebhookDelivery, WebhookEndpoint

__all__ = [
    "DeliveryOutcome",
    "DeliveryResult",
    "DeliveryStatus",
    "DeliveryStatusResponse",
    "DeliveryUpdate",
    "EndpointCounters",
    "EndpointHealthResponse",
    "ErrorResponse",
    "RunDeliveryRequest",
    "RunResponse",
    "EndpointTestRequest",
    "WebhookDelivery",
    "WebhookEndpoint",
]
