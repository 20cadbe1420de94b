"""
Module: test_orchestrator.py
Description: Unit tests for DeliveryOrchestrator.

The executor is replaced with an AsyncMock so tests control each attempt's
outcome and can assert that gated deliveries are never attempted.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from webhook_delivery.delivery.orchestrator import TEST_EVENT_TYPE, DeliveryOrchestrator
from webhook_delivery.models.delivery import DeliveryOutcome
from webhook_delivery.models.webhook import DeliveryStatus, WebhookDelivery

OK = DeliveryOutcome(success=True, status_code=200, response_body="ok", elapsed_ms=12)
DOWN = DeliveryOutcome(
    success=False,
    status_code=503,
    response_body="maintenance",
    error_message="HTTP 503: Service Unavailable",
    elapsed_ms=8,
)


@pytest.fixture
def mock_executor():
    """Executor double that succeeds unless told otherwise."""
    executor = MagicMock()
    executor.execute = AsyncMock(return_value=OK)
    return executor


@pytest.fixture
def orchestrator(seeded_store, mock_executor, clock):
    return DeliveryOrchestrator(seeded_store, mock_executor, clock=clock)


def make_delivery(delivery_id, endpoint_id, now, **overrides):
    fields = dict(
        id=delivery_id,
        endpoint_id=endpoint_id,
        event_type="project.created",
        payload={"project_id": delivery_id},
        created_at=now,
    )
    fields.update(overrides)
    return WebhookDelivery(**fields)


class TestSweep:
    """Test cases for run() without a delivery id."""

    @pytest.mark.asyncio
    async def test_delivers_due_delivery(self, orchestrator, seeded_store, mock_executor, now):
        results = await orchestrator.run()

        assert len(results) == 1
        result = results[0]
        assert result.delivery_id == "dlv_0001"
        assert result.success is True
        assert result.status == DeliveryStatus.DELIVERED
        assert result.status_code == 200
        assert result.attempt_count == 1

        stored = await seeded_store.get_delivery("dlv_0001")
        assert stored.status == DeliveryStatus.DELIVERED
        assert stored.attempt_count == 1
        assert stored.delivered_at == now
        assert stored.next_retry_at is None
        assert stored.response_time_ms == 12

        endpoint = await seeded_store.get_endpoint("ep_project_hooks")
        assert endpoint.success_count == 1
        assert endpoint.last_triggered_at == now
        mock_executor.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_schedules_retry(self, orchestrator, seeded_store, mock_executor, now):
        mock_executor.execute.return_value = DOWN

        results = await orchestrator.run()

        assert results[0].success is False
        assert results[0].status == DeliveryStatus.FAILED
        assert results[0].error == "HTTP 503: Service Unavailable"

        stored = await seeded_store.get_delivery("dlv_0001")
        assert stored.status == DeliveryStatus.FAILED
        assert stored.attempt_count == 1
        assert stored.next_retry_at == now + timedelta(minutes=10)
        assert stored.response_status_code == 503
        assert stored.response_body == "maintenance"

        endpoint = await seeded_store.get_endpoint("ep_project_hooks")
        assert endpoint.failure_count == 1
        assert endpoint.last_failed_at == now

    @pytest.mark.asyncio
    async def test_not_yet_due_is_not_selected(self, orchestrator, seeded_store, mock_executor, now):
        delivery = await seeded_store.get_delivery("dlv_0001")
        delivery.status = DeliveryStatus.FAILED
        delivery.attempt_count = 1
        delivery.next_retry_at = now + timedelta(minutes=5)
        await seeded_store.put_delivery(delivery)

        assert await orchestrator.run() == []
        mock_executor.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_inactive_endpoint_is_skipped(self, orchestrator, seeded_store, sample_endpoint, mock_executor):
        sample_endpoint.is_active = False
        await seeded_store.put_endpoint(sample_endpoint)

        results = await orchestrator.run()

        assert results == []
        mock_executor.execute.assert_not_awaited()
        stored = await seeded_store.get_delivery("dlv_0001")
        assert stored.status == DeliveryStatus.PENDING
        assert stored.attempt_count == 0

    @pytest.mark.asyncio
    async def test_unsubscribed_event_is_skipped(self, orchestrator, seeded_store, mock_executor, now):
        await seeded_store.put_delivery(make_delivery("dlv_invoice", "ep_project_hooks", now, event_type="invoice.paid"))

        results = await orchestrator.run()

        assert [r.delivery_id for r in results] == ["dlv_0001"]
        assert mock_executor.execute.await_count == 1
        stored = await seeded_store.get_delivery("dlv_invoice")
        assert stored.status == DeliveryStatus.PENDING
        assert stored.attempt_count == 0

    @pytest.mark.asyncio
    async def test_missing_endpoint_is_skipped(self, orchestrator, seeded_store, mock_executor, now):
        await seeded_store.put_delivery(make_delivery("dlv_orphan", "ep_deleted", now))

        results = await orchestrator.run()

        assert [r.delivery_id for r in results] == ["dlv_0001"]
        assert (await seeded_store.get_delivery("dlv_orphan")).attempt_count == 0

    @pytest.mark.asyncio
    async def test_one_failing_delivery_does_not_stop_sweep(self, orchestrator, seeded_store, mock_executor, now):
        """An exception while processing one delivery is reported in its result only."""
        await seeded_store.put_delivery(make_delivery("dlv_bad", "ep_project_hooks", now - timedelta(minutes=1)))

        async def execute(delivery, endpoint):
            if delivery.id == "dlv_bad":
                raise RuntimeError("serializer blew up")
            return OK

        mock_executor.execute.side_effect = execute

        results = await orchestrator.run()

        by_id = {r.delivery_id: r for r in results}
        assert by_id["dlv_bad"].success is False
        assert by_id["dlv_bad"].status is None
        assert by_id["dlv_bad"].error == "serializer blew up"
        assert by_id["dlv_0001"].success is True
        assert (await seeded_store.get_delivery("dlv_0001")).status == DeliveryStatus.DELIVERED

    @pytest.mark.asyncio
    async def test_page_size_limits_selection(self, seeded_store, mock_executor, clock, now):
        for i in range(5):
            await seeded_store.put_delivery(make_delivery(f"dlv_extra_{i}", "ep_project_hooks", now + timedelta(seconds=i + 1)))
        orchestrator = DeliveryOrchestrator(seeded_store, mock_executor, page_size=3, clock=clock)

        results = await orchestrator.run()

        assert [r.delivery_id for r in results] == ["dlv_0001", "dlv_extra_0", "dlv_extra_1"]

    @pytest.mark.asyncio
    async def test_concurrent_sweep_processes_everything(self, seeded_store, mock_executor, clock, now):
        for i in range(6):
            await seeded_store.put_delivery(make_delivery(f"dlv_extra_{i}", "ep_project_hooks", now + timedelta(seconds=i + 1)))
        orchestrator = DeliveryOrchestrator(seeded_store, mock_executor, concurrency=4, clock=clock)

        results = await orchestrator.run()

        assert len(results) == 7
        assert all(r.success for r in results)
        endpoint = await seeded_store.get_endpoint("ep_project_hooks")
        assert endpoint.success_count == 7

    @pytest.mark.asyncio
    async def test_list_errors_propagate(self, mock_executor, clock):
        store = MagicMock()
        store.list_due_deliveries = AsyncMock(side_effect=RuntimeError("table unavailable"))
        orchestrator = DeliveryOrchestrator(store, mock_executor, clock=clock)

        with pytest.raises(RuntimeError, match="table unavailable"):
            await orchestrator.run()

    @pytest.mark.asyncio
    async def test_sweep_metrics(self, seeded_store, mock_executor, clock):
        metrics = MagicMock()
        orchestrator = DeliveryOrchestrator(seeded_store, mock_executor, metrics_client=metrics, clock=clock)

        await orchestrator.run()

        metrics.put_metric.assert_any_call(metric_name="WebhookDeliverySucceeded", value=1.0)
        metrics.put_metric.assert_any_call(metric_name="WebhookSweepProcessed", value=1.0)

    def test_invalid_arguments(self, memory_store, mock_executor):
        with pytest.raises(ValueError):
            DeliveryOrchestrator(memory_store, mock_executor, page_size=0)
        with pytest.raises(ValueError):
            DeliveryOrchestrator(memory_store, mock_executor, concurrency=0)


class TestSingleDelivery:
    """Test cases for run(delivery_id)."""

    @pytest.mark.asyncio
    async def test_unknown_delivery_returns_empty(self, orchestrator, mock_executor):
        assert await orchestrator.run("dlv_missing") == []
        mock_executor.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_processes_only_named_delivery(self, orchestrator, seeded_store, mock_executor, now):
        await seeded_store.put_delivery(make_delivery("dlv_other", "ep_project_hooks", now))

        results = await orchestrator.run("dlv_other")

        assert [r.delivery_id for r in results] == ["dlv_other"]
        assert (await seeded_store.get_delivery("dlv_0001")).status == DeliveryStatus.PENDING

    @pytest.mark.asyncio
    async def test_bypasses_retry_time(self, orchestrator, seeded_store, mock_executor, now):
        delivery = await seeded_store.get_delivery("dlv_0001")
        delivery.status = DeliveryStatus.FAILED
        delivery.attempt_count = 2
        delivery.next_retry_at = now + timedelta(hours=1)
        await seeded_store.put_delivery(delivery)

        results = await orchestrator.run("dlv_0001")

        assert results[0].attempt_count == 3
        assert results[0].status == DeliveryStatus.DELIVERED

    @pytest.mark.asyncio
    async def test_bypasses_attempt_ceiling(self, orchestrator, seeded_store, mock_executor):
        """A dead-lettered delivery can be forced, and dead-letters again on failure."""
        delivery = await seeded_store.get_delivery("dlv_0001")
        delivery.status = DeliveryStatus.FAILED_PERMANENT
        delivery.attempt_count = 5
        await seeded_store.put_delivery(delivery)
        mock_executor.execute.return_value = DOWN

        results = await orchestrator.run("dlv_0001")

        assert results[0].attempt_count == 6
        assert results[0].status == DeliveryStatus.FAILED_PERMANENT
        stored = await seeded_store.get_delivery("dlv_0001")
        assert stored.attempt_count == 6
        assert stored.next_retry_at is None

    @pytest.mark.asyncio
    async def test_still_honors_endpoint_gates(self, orchestrator, seeded_store, sample_endpoint, mock_executor):
        sample_endpoint.subscribed_events = ["invoice.*"]
        await seeded_store.put_endpoint(sample_endpoint)

        assert await orchestrator.run("dlv_0001") == []
        mock_executor.execute.assert_not_awaited()


class TestSendTestEvent:
    """Test cases for send_test_event()."""

    @pytest.mark.asyncio
    async def test_records_and_attempts_test_delivery(self, orchestrator, seeded_store, mock_executor):
        result = await orchestrator.send_test_event("ep_project_hooks")

        assert result.success is True
        assert result.event_type == TEST_EVENT_TYPE
        assert result.endpoint_id == "ep_project_hooks"

        delivery, endpoint = mock_executor.execute.await_args.args
        assert delivery.event_type == "webhook.test"
        assert delivery.max_attempts == 1
        assert delivery.payload["message"] == "This is a test webhook delivery"
        assert delivery.payload["timestamp"] == "2024-01-15T10:30:00.000Z"

        stored = await seeded_store.get_delivery(result.delivery_id)
        assert stored.status == DeliveryStatus.DELIVERED
        assert stored.attempt_count == 1

    @pytest.mark.asyncio
    async def test_ignores_subscription_and_activity(self, orchestrator, seeded_store, sample_endpoint, mock_executor):
        sample_endpoint.is_active = False
        sample_endpoint.subscribed_events = []
        await seeded_store.put_endpoint(sample_endpoint)
        mock_executor.execute.return_value = DOWN

        result = await orchestrator.send_test_event("ep_project_hooks")

        assert result.success is False
        assert result.status == DeliveryStatus.FAILED_PERMANENT
        endpoint = await seeded_store.get_endpoint("ep_project_hooks")
        assert endpoint.failure_count == 1

    @pytest.mark.asyncio
    async def test_unknown_endpoint(self, orchestrator, mock_executor):
        assert await orchestrator.send_test_event("ep_missing") is None
        mock_executor.execute.assert_not_awaited()
