"""
Module: health.py
Description: Endpoint health tracking and auto-disable.

Records each attempt outcome on the owning endpoint and disables the
endpoint once it accumulates `failure_threshold` consecutive failures.
Re-enabling is a manual owner action outside this service.
"""

from datetime import datetime
from typing import Optional

from webhook_delivery.models.delivery import EndpointCounters
from webhook_delivery.models.webhook import WebhookEndpoint
from webhook_delivery.storage.base import DeliveryStore
from webhook_delivery.utils.logger import get_logger
from webhook_delivery.utils.metrics import MetricsClient

logger = get_logger(__name__)

DEFAULT_FAILURE_THRESHOLD = 10


class EndpointHealthTracker:
    """Maintains success/failure counters per endpoint."""

    def __init__(
        self,
        store: DeliveryStore,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        metrics_client: Optional[MetricsClient] = None,
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self.store = store
        self.failure_threshold = failure_threshold
        self.metrics_client = metrics_client

    async def record_outcome(
        self,
        endpoint: WebhookEndpoint,
        success: bool,
        now: datetime,
    ) -> EndpointCounters:
        """
        Record an attempt outcome and auto-disable on too many failures.

        Args:
            endpoint: Endpoint the attempt targeted
            success: Whether the attempt succeeded
            now: Attempt time

        Returns:
            Counters after the update, with is_active reflecting any auto-disable
        """
        counters = await self.store.increment_endpoint_counters(endpoint.id, success=success, at=now)

        if not success and counters.is_active and counters.failure_count >= self.failure_threshold:
            await self.store.disable_endpoint(endpoint.id)
            counters.is_active = False

            logger.warning(
                "Endpoint disabled after consecutive failures",
                endpoint_id=endpoint.id,
                failure_count=counters.failure_count,
                failure_threshold=self.failure_threshold
            )
            if self.metrics_client:
                self.metrics_client.put_metric(
                    metric_name="WebhookEndpointDisabled",
                    value=1.0
                )

        return counters
