"""
Module: request.py
Description: API request models for the webhook delivery endpoints.

Key Components:
- RunDeliveryRequest: Body of POST /webhook-delivery
- EndpointTestRequest: Body of POST /webhook-delivery/test

Dependencies: pydantic, typing
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RunDeliveryRequest(BaseModel):
    """
    Request model for triggering delivery processing.

    When delivery_id is present exactly that delivery is processed,
    bypassing its eligibility gates. Otherwise a sweep runs.

    Example:
        {"delivery_id": "5f1c9a0e-4a8e-4f55-9b59-0d3f1e0a2b7c"}
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    delivery_id: Optional[str] = Field(
        default=None,
        min_length=1,
        description="Delivery to process; omit to sweep all due deliveries"
    )


class EndpointTestRequest(BaseModel):
    """Request model for sending a webhook.test event to one endpoint."""

    model_config = ConfigDict(str_strip_whitespace=True)

    endpoint_id: str = Field(..., min_length=1, description="Endpoint to probe")
