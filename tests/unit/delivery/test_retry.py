"""
Module: test_retry.py
Description: Unit tests for retry scheduling and backoff.
"""

from datetime import timedelta

import pytest

from webhook_delivery.delivery.retry import RetryScheduler, backoff_delay
from webhook_delivery.models.delivery import DeliveryOutcome
from webhook_delivery.models.webhook import DeliveryStatus

SUCCESS = DeliveryOutcome(success=True, status_code=200, response_body="ok", elapsed_ms=42)
FAILURE = DeliveryOutcome(
    success=False,
    status_code=500,
    response_body="boom",
    error_message="HTTP 500: Internal Server Error",
    elapsed_ms=17,
)


class TestBackoffDelay:
    """Test cases for backoff_delay()."""

    @pytest.mark.parametrize("attempt_count,minutes", [(1, 10), (2, 20), (3, 40), (4, 80)])
    def test_sequence(self, attempt_count, minutes):
        """Delay is 2^attempt_count * 5 minutes."""
        assert backoff_delay(attempt_count) == timedelta(minutes=minutes)

    def test_custom_base(self):
        assert backoff_delay(3, base_minutes=1) == timedelta(minutes=8)

    def test_negative_attempts_rejected(self):
        with pytest.raises(ValueError):
            backoff_delay(-1)


class TestRetryScheduler:
    """Test cases for RetryScheduler.next_state()."""

    def test_success_marks_delivered(self, sample_delivery, now):
        """Success is terminal: delivered, no retry time, delivered_at set."""
        update = RetryScheduler().next_state(sample_delivery, 1, SUCCESS, now)

        assert update.status == DeliveryStatus.DELIVERED
        assert update.attempt_count == 1
        assert update.next_retry_at is None
        assert update.delivered_at == now
        assert update.last_attempt_at == now
        assert update.response_status_code == 200
        assert update.response_body == "ok"
        assert update.response_time_ms == 42
        assert update.error_message is None

    def test_first_failure_schedules_retry_in_ten_minutes(self, sample_delivery, now):
        update = RetryScheduler().next_state(sample_delivery, 1, FAILURE, now)

        assert update.status == DeliveryStatus.FAILED
        assert update.next_retry_at == now + timedelta(minutes=10)
        assert update.delivered_at is None
        assert update.response_status_code == 500
        assert update.response_body == "boom"
        assert update.error_message == "HTTP 500: Internal Server Error"
        assert update.last_attempt_at == now

    @pytest.mark.parametrize("attempt_count,minutes", [(2, 20), (3, 40), (4, 80)])
    def test_later_failures_back_off_exponentially(self, sample_delivery, now, attempt_count, minutes):
        update = RetryScheduler().next_state(sample_delivery, attempt_count, FAILURE, now)

        assert update.status == DeliveryStatus.FAILED
        assert update.next_retry_at - now == timedelta(minutes=minutes)

    def test_exhausted_attempts_dead_letter(self, sample_delivery, now):
        """Failing the final attempt is terminal with no retry time."""
        assert sample_delivery.max_attempts == 5

        update = RetryScheduler().next_state(sample_delivery, 5, FAILURE, now)

        assert update.status == DeliveryStatus.FAILED_PERMANENT
        assert update.next_retry_at is None
        assert update.error_message == "HTTP 500: Internal Server Error"
        assert update.last_attempt_at == now

    def test_attempts_beyond_ceiling_dead_letter(self, sample_delivery, now):
        """A forced retry past the ceiling still dead-letters on failure."""
        update = RetryScheduler().next_state(sample_delivery, 7, FAILURE, now)
        assert update.status == DeliveryStatus.FAILED_PERMANENT

    def test_success_after_ceiling_still_delivers(self, sample_delivery, now):
        update = RetryScheduler().next_state(sample_delivery, 6, SUCCESS, now)
        assert update.status == DeliveryStatus.DELIVERED

    def test_custom_max_attempts(self, sample_delivery, now):
        sample_delivery.max_attempts = 2

        assert RetryScheduler().next_state(sample_delivery, 1, FAILURE, now).status == DeliveryStatus.FAILED
        assert RetryScheduler().next_state(sample_delivery, 2, FAILURE, now).status == DeliveryStatus.FAILED_PERMANENT

    def test_transport_failure_keeps_zero_status(self, sample_delivery, now):
        outcome = DeliveryOutcome(success=False, status_code=0, error_message="connection refused")

        update = RetryScheduler().next_state(sample_delivery, 1, outcome, now)

        assert update.response_status_code == 0
        assert update.response_body == ""
        assert update.error_message == "connection refused"

    def test_invalid_base(self):
        with pytest.raises(ValueError):
            RetryScheduler(backoff_base_minutes=0)
