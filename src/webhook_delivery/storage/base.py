"""
Module: base.py
Description: Storage interface for webhook endpoints and deliveries.

The orchestrator, health tracker, and HTTP handlers depend only on this
interface. DynamoDBDeliveryStore backs production; InMemoryDeliveryStore
backs tests and local runs.

All methods are async to match the rest of the delivery pipeline.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from webhook_delivery.models.delivery import DeliveryUpdate, EndpointCounters
from webhook_delivery.models.webhook import WebhookDelivery, WebhookEndpoint


class DeliveryStore(ABC):
    """Durable store of WebhookEndpoint and WebhookDelivery records."""

    @abstractmethod
    async def get_endpoint(self, endpoint_id: str) -> Optional[WebhookEndpoint]:
        """Load an endpoint by id, or None if it does not exist."""

    @abstractmethod
    async def put_endpoint(self, endpoint: WebhookEndpoint) -> None:
        """Create or replace an endpoint."""

    @abstractmethod
    async def get_delivery(self, delivery_id: str) -> Optional[WebhookDelivery]:
        """Load a delivery by id, or None if it does not exist."""

    @abstractmethod
    async def put_delivery(self, delivery: WebhookDelivery) -> None:
        """Create or replace a delivery. Producers use this to enqueue."""

    @abstractmethod
    async def list_due_deliveries(self, now: datetime, limit: int = 100) -> List[WebhookDelivery]:
        """
        List deliveries a sweep at `now` should attempt, oldest first.

        A delivery is due when its status is pending or failed, its
        next_retry_at is unset or not after `now`, and it has attempts left.
        """

    @abstractmethod
    async def update_delivery(self, delivery_id: str, update: DeliveryUpdate) -> None:
        """
        Write the fields of `update` onto an existing delivery.

        Raises:
            KeyError: If the delivery does not exist
        """

    @abstractmethod
    async def increment_endpoint_counters(
        self,
        endpoint_id: str,
        success: bool,
        at: datetime,
    ) -> EndpointCounters:
        """
        Atomically record one attempt outcome on an endpoint.

        Success increments success_count and resets failure_count.
        Failure increments failure_count and sets last_failed_at.
        Both set last_triggered_at.

        Raises:
            KeyError: If the endpoint does not exist
        """

    @abstractmethod
    async def disable_endpoint(self, endpoint_id: str) -> None:
        """Set is_active to False."""
