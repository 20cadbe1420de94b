"""
Module: storage/retry.py
Description: Retry policy for transient DynamoDB errors.

Throttling and internal server errors are retried with exponential
backoff. Every other ClientError (validation, failed conditions, missing
tables) is raised on the first attempt.
"""

from botocore.exceptions import ClientError
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from webhook_delivery.utils.logger import get_logger

logger = get_logger(__name__)

RETRYABLE_ERROR_CODES = frozenset({
    "ProvisionedThroughputExceededException",
    "ThrottlingException",
    "RequestLimitExceeded",
    "InternalServerError",
    "ServiceUnavailable",
    "TransactionConflictException",
})


def is_retryable_client_error(exc: BaseException) -> bool:
    """True for ClientErrors that are worth retrying."""
    if not isinstance(exc, ClientError):
        return False
    return exc.response.get('Error', {}).get('Code') in RETRYABLE_ERROR_CODES


def _log_retry(retry_state) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retrying DynamoDB operation",
        operation=getattr(retry_state.fn, '__name__', None),
        attempt=retry_state.attempt_number,
        error=str(exc) if exc else None
    )


storage_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
    retry=retry_if_exception(is_retryable_client_error),
    before_sleep=_log_retry,
    reraise=True
)
