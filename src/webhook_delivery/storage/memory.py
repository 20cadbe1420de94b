"""
Module: memory.py
Description: In-memory delivery store for tests and local development.

Records are kept as model copies so callers cannot mutate stored state
without going through the store.
"""

import asyncio
from datetime import datetime
from typing import Dict, List, Optional

from webhook_delivery.models.delivery import DeliveryUpdate, EndpointCounters
from webhook_delivery.models.webhook import WebhookDelivery, WebhookEndpoint
from webhook_delivery.storage.base import DeliveryStore


class InMemoryDeliveryStore(DeliveryStore):
    """Dict-backed DeliveryStore guarded by an asyncio lock."""

    def __init__(self):
        self.endpoints: Dict[str, WebhookEndpoint] = {}
        self.deliveries: Dict[str, WebhookDelivery] = {}
        self._lock = asyncio.Lock()

    async def get_endpoint(self, endpoint_id: str) -> Optional[WebhookEndpoint]:
        endpoint = self.endpoints.get(endpoint_id)
        return endpoint.model_copy(deep=True) if endpoint else None

    async def put_endpoint(self, endpoint: WebhookEndpoint) -> None:
        async with self._lock:
            self.endpoints[endpoint.id] = endpoint.model_copy(deep=True)

    async def get_delivery(self, delivery_id: str) -> Optional[WebhookDelivery]:
        delivery = self.deliveries.get(delivery_id)
        return delivery.model_copy(deep=True) if delivery else None

    async def put_delivery(self, delivery: WebhookDelivery) -> None:
        async with self._lock:
            self.deliveries[delivery.id] = delivery.model_copy(deep=True)

    async def list_due_deliveries(self, now: datetime, limit: int = 100) -> List[WebhookDelivery]:
        if limit <= 0:
            raise ValueError("limit must be positive")
        due = sorted(
            (d for d in self.deliveries.values() if d.is_due(now)),
            key=lambda d: d.created_at
        )
        return [d.model_copy(deep=True) for d in due[:limit]]

    async def update_delivery(self, delivery_id: str, update: DeliveryUpdate) -> None:
        async with self._lock:
            current = self.deliveries.get(delivery_id)
            if current is None:
                raise KeyError(f"delivery {delivery_id} not found")
            self.deliveries[delivery_id] = current.model_copy(update=update.model_dump())

    async def increment_endpoint_counters(
        self,
        endpoint_id: str,
        success: bool,
        at: datetime,
    ) -> EndpointCounters:
        async with self._lock:
            endpoint = self.endpoints.get(endpoint_id)
            if endpoint is None:
                raise KeyError(f"endpoint {endpoint_id} not found")

            if success:
                changes = {
                    "success_count": endpoint.success_count + 1,
                    "failure_count": 0,
                    "last_triggered_at": at,
                }
            else:
                changes = {
                    "failure_count": endpoint.failure_count + 1,
                    "last_failed_at": at,
                    "last_triggered_at": at,
                }
            endpoint = endpoint.model_copy(update=changes)
            self.endpoints[endpoint_id] = endpoint

            return EndpointCounters(
                endpoint_id=endpoint.id,
                success_count=endpoint.success_count,
                failure_count=endpoint.failure_count,
                is_active=endpoint.is_active,
                last_triggered_at=endpoint.last_triggered_at,
                last_failed_at=endpoint.last_failed_at,
            )

    async def disable_endpoint(self, endpoint_id: str) -> None:
        async with self._lock:
            endpoint = self.endpoints.get(endpoint_id)
            if endpoint is None:
                raise KeyError(f"endpoint {endpoint_id} not found")
            self.endpoints[endpoint_id] = endpoint.model_copy(update={"is_active": False})
