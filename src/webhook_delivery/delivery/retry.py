"""
Module: delivery/retry.py
Description: Retry scheduling for webhook deliveries.

Turns the outcome of one delivery attempt into the next persisted state of
the delivery. Failed attempts are rescheduled with exponential backoff
until the attempt ceiling is reached, after which the delivery is
dead-lettered as failed_permanent.

Backoff is exponential in the attempt count after the increment:
attempt 1 -> 10 min, 2 -> 20 min, 3 -> 40 min, 4 -> 80 min (base 5 min).

Key Components:
- backoff_delay(): Delay before the next attempt
- RetryScheduler.next_state(): DeliveryUpdate for an attempt outcome

Dependencies: datetime, models
Author: BuildDesk Platform Team
"""

from datetime import datetime, timedelta

from webhook_delivery.models.delivery import DeliveryOutcome, DeliveryUpdate
from webhook_delivery.models.webhook import DeliveryStatus, WebhookDelivery
from webhook_delivery.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_BACKOFF_BASE_MINUTES = 5


def backoff_delay(attempt_count: int, base_minutes: int = DEFAULT_BACKOFF_BASE_MINUTES) -> timedelta:
    """
    Delay before retrying after a failed attempt.

    Args:
        attempt_count: Attempts made, including the one that just failed
        base_minutes: Backoff multiplier in minutes

    Returns:
        2^attempt_count * base_minutes as a timedelta
    """
    if attempt_count < 0:
        raise ValueError("attempt_count must be non-negative")
    return timedelta(minutes=(2 ** attempt_count) * base_minutes)


class RetryScheduler:
    """
    Computes delivery state transitions after an attempt.

    The scheduler is pure: it never touches storage. The orchestrator
    persists the DeliveryUpdate it returns.
    """

    def __init__(self, backoff_base_minutes: int = DEFAULT_BACKOFF_BASE_MINUTES):
        if backoff_base_minutes < 1:
            raise ValueError("backoff_base_minutes must be at least 1")
        self.backoff_base_minutes = backoff_base_minutes

    def next_state(
        self,
        delivery: WebhookDelivery,
        attempt_count: int,
        outcome: DeliveryOutcome,
        now: datetime,
    ) -> DeliveryUpdate:
        """
        Compute the fields to persist after an attempt.

        Args:
            delivery: Delivery as loaded before the attempt
            attempt_count: Attempt count after incrementing for this attempt
            outcome: Executor result for this attempt
            now: Attempt time

        Returns:
            DeliveryUpdate with status, attempt bookkeeping, and response details
        """
        update = DeliveryUpdate(
            status=DeliveryStatus.DELIVERED if outcome.success else DeliveryStatus.FAILED,
            attempt_count=attempt_count,
            last_attempt_at=now,
            response_status_code=outcome.status_code,
            response_body=outcome.response_body,
            response_time_ms=outcome.elapsed_ms,
            error_message=outcome.error_message,
        )

        if outcome.success:
            update.delivered_at = now
            return update

        if attempt_count >= delivery.max_attempts:
            update.status = DeliveryStatus.FAILED_PERMANENT
            logger.warning(
                "Delivery exhausted retries",
                delivery_id=delivery.id,
                endpoint_id=delivery.endpoint_id,
                attempt_count=attempt_count,
                max_attempts=delivery.max_attempts
            )
            return update

        update.next_retry_at = now + backoff_delay(attempt_count, self.backoff_base_minutes)
        logger.info(
            "Delivery scheduled for retry",
            delivery_id=delivery.id,
            attempt_count=attempt_count,
            next_retry_at=update.next_retry_at.isoformat()
        )
        return update
