"""
Module: orchestrator.py
Description: Entry point for processing queued webhook deliveries.

Selects deliveries (one named delivery, or a page of due ones), checks the
owning endpoint, attempts delivery, and persists the resulting delivery
state and endpoint health.

Key Components:
- DeliveryOrchestrator.run(): Process one delivery or sweep due deliveries
- DeliveryOrchestrator.send_test_event(): Probe an endpoint with webhook.test

Delivery is at-least-once. Overlapping sweeps may deliver the same record
twice; every persisted transition is an update-by-id that is safe to
re-apply.

Dependencies: asyncio, models, storage, delivery components
Author: BuildDesk Platform Team
"""

import asyncio
from datetime import datetime
from typing import Callable, List, Optional

from webhook_delivery.delivery.health import EndpointHealthTracker
from webhook_delivery.delivery.matching import matches
from webhook_delivery.delivery.push import PushDeliveryClient
from webhook_delivery.delivery.retry import RetryScheduler
from webhook_delivery.models.response import DeliveryResult
from webhook_delivery.models.webhook import DeliveryStatus, WebhookDelivery, WebhookEndpoint
from webhook_delivery.storage.base import DeliveryStore
from webhook_delivery.utils.clock import isoformat_z, utcnow
from webhook_delivery.utils.logger import get_logger
from webhook_delivery.utils.metrics import MetricsClient

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 100
TEST_EVENT_TYPE = "webhook.test"
TEST_EVENT_MESSAGE = "This is a test webhook delivery"


class DeliveryOrchestrator:
    """
    Coordinates delivery attempts against a DeliveryStore.

    For each selected delivery the steps are strictly sequential: load the
    endpoint, gate on activity and subscription, execute, persist the new
    delivery state, then update endpoint health. Different deliveries are
    independent and may run concurrently up to `concurrency`.

    Attributes:
        store: Endpoint and delivery storage
        executor: Performs the HTTP attempt
        scheduler: Computes the post-attempt delivery state
        health_tracker: Updates endpoint counters and auto-disables
        page_size: Maximum deliveries selected by one sweep
        concurrency: Maximum deliveries attempted at once
    """

    def __init__(
        self,
        store: DeliveryStore,
        executor: PushDeliveryClient,
        scheduler: Optional[RetryScheduler] = None,
        health_tracker: Optional[EndpointHealthTracker] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        concurrency: int = 1,
        metrics_client: Optional[MetricsClient] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        self.store = store
        self.executor = executor
        self.scheduler = scheduler or RetryScheduler()
        self.health_tracker = health_tracker or EndpointHealthTracker(store, metrics_client=metrics_client)
        self.page_size = page_size
        self.concurrency = concurrency
        self.metrics_client = metrics_client
        self.clock = clock

    async def run(self, delivery_id: Optional[str] = None) -> List[DeliveryResult]:
        """
        Process a single delivery or sweep all due deliveries.

        An explicit delivery_id is processed regardless of its status,
        next_retry_at, or attempt ceiling. Errors while selecting
        deliveries propagate; errors while processing one delivery are
        reported in that delivery's result.

        Args:
            delivery_id: Delivery to process; None to sweep

        Returns:
            One result per attempted (non-skipped) delivery
        """
        if delivery_id is not None:
            delivery = await self.store.get_delivery(delivery_id)
            if delivery is None:
                logger.warning("Delivery not found", delivery_id=delivery_id)
                return []
            deliveries = [delivery]
        else:
            deliveries = await self.store.list_due_deliveries(self.clock(), limit=self.page_size)

        logger.info(
            "Processing webhook deliveries",
            selected=len(deliveries),
            single=delivery_id is not None
        )

        semaphore = asyncio.Semaphore(self.concurrency)

        async def process(delivery: WebhookDelivery) -> Optional[DeliveryResult]:
            async with semaphore:
                return await self._process_isolated(delivery)

        outcomes = await asyncio.gather(*(process(d) for d in deliveries))
        results = [result for result in outcomes if result is not None]

        if self.metrics_client and delivery_id is None:
            self.metrics_client.put_metric(
                metric_name="WebhookSweepProcessed",
                value=float(len(results))
            )

        logger.info(
            "Webhook deliveries processed",
            selected=len(deliveries),
            processed=len(results),
            succeeded=sum(1 for r in results if r.success)
        )
        return results

    async def send_test_event(self, endpoint_id: str) -> Optional[DeliveryResult]:
        """
        Record and attempt a webhook.test delivery to one endpoint.

        The test skips the activity and subscription gates; its outcome
        still counts towards endpoint health.

        Returns:
            The attempt result, or None if the endpoint does not exist
        """
        endpoint = await self.store.get_endpoint(endpoint_id)
        if endpoint is None:
            logger.warning("Endpoint not found for test delivery", endpoint_id=endpoint_id)
            return None

        delivery = WebhookDelivery.create(
            endpoint_id=endpoint.id,
            event_type=TEST_EVENT_TYPE,
            payload={
                "message": TEST_EVENT_MESSAGE,
                "timestamp": isoformat_z(self.clock()),
            },
            max_attempts=1,
        )
        await self.store.put_delivery(delivery)

        logger.info("Sending test delivery", endpoint_id=endpoint.id, delivery_id=delivery.id)
        return await self._attempt(delivery, endpoint)

    async def _process_isolated(self, delivery: WebhookDelivery) -> Optional[DeliveryResult]:
        try:
            return await self._process(delivery)
        except Exception as e:
            logger.error(
                "Error processing delivery",
                delivery_id=delivery.id,
                endpoint_id=delivery.endpoint_id,
                error=str(e),
                error_type=type(e).__name__
            )
            return DeliveryResult(
                delivery_id=delivery.id,
                endpoint_id=delivery.endpoint_id,
                event_type=delivery.event_type,
                success=False,
                error=str(e) or type(e).__name__,
            )

    async def _process(self, delivery: WebhookDelivery) -> Optional[DeliveryResult]:
        endpoint = await self.store.get_endpoint(delivery.endpoint_id)
        if endpoint is None:
            logger.info(
                "Skipping delivery for missing endpoint",
                delivery_id=delivery.id,
                endpoint_id=delivery.endpoint_id,
                reason="endpoint_not_found"
            )
            return None

        if not endpoint.is_active:
            logger.info(
                "Skipping delivery for inactive endpoint",
                delivery_id=delivery.id,
                endpoint_id=endpoint.id,
                reason="endpoint_inactive"
            )
            return None

        if not matches(endpoint.subscribed_events, delivery.event_type):
            logger.info(
                "Skipping delivery for unsubscribed event",
                delivery_id=delivery.id,
                endpoint_id=endpoint.id,
                event_type=delivery.event_type,
                reason="not_subscribed"
            )
            return None

        return await self._attempt(delivery, endpoint)

    async def _attempt(self, delivery: WebhookDelivery, endpoint: WebhookEndpoint) -> DeliveryResult:
        attempt_count = delivery.attempt_count + 1
        outcome = await self.executor.execute(delivery, endpoint)
        now = self.clock()

        update = self.scheduler.next_state(delivery, attempt_count, outcome, now)
        await self.store.update_delivery(delivery.id, update)
        await self.health_tracker.record_outcome(endpoint, outcome.success, now)

        self._publish_outcome(update.status)

        return DeliveryResult(
            delivery_id=delivery.id,
            endpoint_id=endpoint.id,
            event_type=delivery.event_type,
            success=outcome.success,
            status=update.status,
            status_code=outcome.status_code,
            attempt_count=attempt_count,
            elapsed_ms=outcome.elapsed_ms,
            error=outcome.error_message,
        )

    def _publish_outcome(self, status: str) -> None:
        if not self.metrics_client:
            return
        if status == DeliveryStatus.DELIVERED:
            metric_name = "WebhookDeliverySucceeded"
        elif status == DeliveryStatus.FAILED_PERMANENT:
            metric_name = "WebhookDeliveryDeadLettered"
        else:
            metric_name = "WebhookDeliveryFailed"
        self.metrics_client.put_metric(metric_name=metric_name, value=1.0)
