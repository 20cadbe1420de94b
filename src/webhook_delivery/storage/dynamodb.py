"""
Module: dynamodb.py
Description: DynamoDB-backed store for webhook endpoints and deliveries.

Provides async operations for reading and updating WebhookEndpoint and
WebhookDelivery records, querying due deliveries, and atomically
maintaining endpoint health counters.

Key Components:
- DynamoDBDeliveryStore: DeliveryStore implementation over two tables
- Item (de)serialization: datetimes as ISO 8601 strings, payload as JSON text
- Atomic counters: ADD/SET update expressions for endpoint health
- Error handling: ClientError logging, tenacity retries for throttling

Table layout:
- endpoints table: hash key `id`
- deliveries table: hash key `id`, GSI `StatusIndex` (status, created_at)

Dependencies: boto3, botocore, pydantic, tenacity, datetime, json, typing
Author: BuildDesk Platform Team
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import ClientError
from pydantic import ValidationError

from webhook_delivery.models.delivery import DeliveryUpdate, EndpointCounters
from webhook_delivery.models.webhook import RETRYABLE_STATUSES, WebhookDelivery, WebhookEndpoint
from webhook_delivery.storage.base import DeliveryStore
from webhook_delivery.storage.retry import storage_retry
from webhook_delivery.utils.clock import parse_datetime
from webhook_delivery.utils.logger import get_logger

logger = get_logger(__name__)

STATUS_INDEX = 'StatusIndex'
MAX_PAGES_PER_STATUS = 10

_ENDPOINT_DATETIME_FIELDS = ('last_triggered_at', 'last_failed_at')
_DELIVERY_DATETIME_FIELDS = ('next_retry_at', 'last_attempt_at', 'delivered_at', 'created_at')
_ENDPOINT_INT_FIELDS = ('success_count', 'failure_count', 'timeout_seconds', 'retry_attempts')
_DELIVERY_INT_FIELDS = ('attempt_count', 'max_attempts', 'response_status_code', 'response_time_ms')


def _to_int(value: Any) -> Any:
    return int(value) if isinstance(value, Decimal) else value


def _serialize(value: Any) -> Any:
    if isinstance(value, datetime):
        # UTC only, so stored timestamps compare correctly as strings
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()
    return value


def endpoint_to_item(endpoint: WebhookEndpoint) -> Dict[str, Any]:
    """Convert an endpoint to a DynamoDB item, dropping None values."""
    item = endpoint.model_dump()
    item = {k: _serialize(v) for k, v in item.items() if v is not None}
    return item


def item_to_endpoint(item: Dict[str, Any]) -> WebhookEndpoint:
    """Convert a DynamoDB item back to an endpoint."""
    data = dict(item)
    for field in _ENDPOINT_DATETIME_FIELDS:
        if data.get(field) is not None:
            data[field] = parse_datetime(data[field])
    for field in _ENDPOINT_INT_FIELDS:
        if field in data:
            data[field] = _to_int(data[field])
    return WebhookEndpoint(**data)


def delivery_to_item(delivery: WebhookDelivery) -> Dict[str, Any]:
    """
    Convert a delivery to a DynamoDB item.

    The payload is stored as JSON text so floats and nested types survive
    without Decimal conversion.
    """
    item = delivery.model_dump()
    item['payload'] = json.dumps(item['payload'])
    item = {k: _serialize(v) for k, v in item.items() if v is not None}
    return item


def item_to_delivery(item: Dict[str, Any]) -> WebhookDelivery:
    """Convert a DynamoDB item back to a delivery."""
    data = dict(item)
    if isinstance(data.get('payload'), str):
        data['payload'] = json.loads(data['payload'])
    for field in _DELIVERY_DATETIME_FIELDS:
        if data.get(field) is not None:
            data[field] = parse_datetime(data[field])
    for field in _DELIVERY_INT_FIELDS:
        if field in data:
            data[field] = _to_int(data[field])
    return WebhookDelivery(**data)


class DynamoDBDeliveryStore(DeliveryStore):
    """
    DynamoDB client for webhook endpoint and delivery operations.

    Attributes:
        endpoints_table_name: Name of the endpoints table
        deliveries_table_name: Name of the deliveries table
        dynamodb: boto3 DynamoDB resource

    Example:
        >>> store = DynamoDBDeliveryStore("webhook-endpoints", "webhook-deliveries")
        >>> delivery = await store.get_delivery("5f1c9a0e-...")
    """

    def __init__(
        self,
        endpoints_table_name: str,
        deliveries_table_name: str,
        region_name: Optional[str] = None,
    ):
        """
        Initialize DynamoDB store.

        Args:
            endpoints_table_name: Name of the endpoints table
            deliveries_table_name: Name of the deliveries table
            region_name: AWS region

        Raises:
            ValueError: If a table name is empty or invalid
        """
        for name in (endpoints_table_name, deliveries_table_name):
            if not name or not isinstance(name, str):
                raise ValueError("table names must be non-empty strings")

        self.endpoints_table_name = endpoints_table_name
        self.deliveries_table_name = deliveries_table_name
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.endpoints_table = self.dynamodb.Table(endpoints_table_name)
        self.deliveries_table = self.dynamodb.Table(deliveries_table_name)

        logger.info(
            "DynamoDB delivery store initialized",
            endpoints_table=endpoints_table_name,
            deliveries_table=deliveries_table_name
        )

    async def get_endpoint(self, endpoint_id: str) -> Optional[WebhookEndpoint]:
        """
        Retrieve an endpoint by ID.

        Raises:
            ClientError: If DynamoDB operation fails
            ValueError: If endpoint_id is invalid
        """
        if not endpoint_id or not isinstance(endpoint_id, str):
            raise ValueError("endpoint_id must be a non-empty string")

        try:
            response = self._get_item(self.endpoints_table, endpoint_id)
        except ClientError as e:
            self._log_client_error("Failed to retrieve endpoint", e, endpoint_id=endpoint_id)
            raise

        if 'Item' not in response:
            logger.info("Endpoint not found in DynamoDB", endpoint_id=endpoint_id)
            return None

        return item_to_endpoint(response['Item'])

    async def put_endpoint(self, endpoint: WebhookEndpoint) -> None:
        """
        Store an endpoint, replacing any existing item.

        Raises:
            ClientError: If DynamoDB operation fails
            ValueError: If endpoint is invalid
        """
        if not isinstance(endpoint, WebhookEndpoint):
            raise ValueError("endpoint must be a WebhookEndpoint instance")

        try:
            self._put_item(self.endpoints_table, endpoint_to_item(endpoint))
        except ClientError as e:
            self._log_client_error("Failed to store endpoint", e, endpoint_id=endpoint.id)
            raise

        logger.info("Endpoint stored in DynamoDB", endpoint_id=endpoint.id)

    async def get_delivery(self, delivery_id: str) -> Optional[WebhookDelivery]:
        """
        Retrieve a delivery by ID.

        Raises:
            ClientError: If DynamoDB operation fails
            ValueError: If delivery_id is invalid
        """
        if not delivery_id or not isinstance(delivery_id, str):
            raise ValueError("delivery_id must be a non-empty string")

        try:
            response = self._get_item(self.deliveries_table, delivery_id)
        except ClientError as e:
            self._log_client_error("Failed to retrieve delivery", e, delivery_id=delivery_id)
            raise

        if 'Item' not in response:
            logger.info("Delivery not found in DynamoDB", delivery_id=delivery_id)
            return None

        return item_to_delivery(response['Item'])

    async def put_delivery(self, delivery: WebhookDelivery) -> None:
        """
        Store a delivery, replacing any existing item.

        Raises:
            ClientError: If DynamoDB operation fails
            ValueError: If delivery is invalid
        """
        if not isinstance(delivery, WebhookDelivery):
            raise ValueError("delivery must be a WebhookDelivery instance")

        try:
            self._put_item(self.deliveries_table, delivery_to_item(delivery))
        except ClientError as e:
            self._log_client_error("Failed to store delivery", e, delivery_id=delivery.id)
            raise

        logger.info(
            "Delivery stored in DynamoDB",
            delivery_id=delivery.id,
            endpoint_id=delivery.endpoint_id,
            event_type=delivery.event_type,
            status=delivery.status
        )

    async def list_due_deliveries(self, now: datetime, limit: int = 100) -> List[WebhookDelivery]:
        """
        List due deliveries, oldest first.

        Queries StatusIndex once per retryable status, following
        LastEvaluatedKey for at most MAX_PAGES_PER_STATUS pages. The due
        predicate runs as a FilterExpression and again on each item, since
        next_retry_at is nullable and cannot be part of the index key.
        Items that fail to deserialize are logged and skipped.

        Raises:
            ClientError: If DynamoDB operation fails
            ValueError: If limit is not between 1 and 100
        """
        if limit <= 0 or limit > 100:
            raise ValueError("limit must be between 1 and 100")

        now_value = _serialize(now)
        due: List[WebhookDelivery] = []
        try:
            for status in RETRYABLE_STATUSES:
                kwargs: Dict[str, Any] = {}
                for _ in range(MAX_PAGES_PER_STATUS):
                    response = self._query_status(status.value, now_value, **kwargs)
                    for item in response.get('Items', []):
                        try:
                            delivery = item_to_delivery(item)
                        except (ValidationError, ValueError, TypeError) as e:
                            logger.error(
                                "Skipping unreadable delivery item",
                                delivery_id=item.get('id'),
                                error=str(e),
                                error_type=type(e).__name__
                            )
                            continue
                        if delivery.is_due(now):
                            due.append(delivery)
                    if 'LastEvaluatedKey' not in response or len(due) >= limit:
                        break
                    kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']
                else:
                    logger.warning(
                        "Due delivery query stopped at page limit",
                        status=status.value,
                        pages=MAX_PAGES_PER_STATUS
                    )

        except ClientError as e:
            self._log_client_error("Failed to list due deliveries", e)
            raise

        due.sort(key=lambda d: d.created_at)
        due = due[:limit]

        logger.info("Due deliveries listed", count=len(due), limit=limit)
        return due

    async def update_delivery(self, delivery_id: str, update: DeliveryUpdate) -> None:
        """
        Apply a post-attempt update to an existing delivery.

        Non-null fields are SET and null fields are REMOVEd. The update is
        conditional on the item existing so it never creates a partial record.

        Raises:
            KeyError: If the delivery does not exist
            ClientError: If DynamoDB operation fails
        """
        set_parts = []
        remove_parts = []
        names: Dict[str, str] = {'#id': 'id'}
        values: Dict[str, Any] = {}

        for field, value in update.model_dump().items():
            names[f'#{field}'] = field
            if value is None:
                remove_parts.append(f'#{field}')
            else:
                set_parts.append(f'#{field} = :{field}')
                values[f':{field}'] = _serialize(value)

        expression = 'SET ' + ', '.join(set_parts)
        if remove_parts:
            expression += ' REMOVE ' + ', '.join(remove_parts)

        try:
            self._update_item(
                self.deliveries_table,
                Key={'id': delivery_id},
                UpdateExpression=expression,
                ConditionExpression='attribute_exists(#id)',
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                raise KeyError(f"delivery {delivery_id} not found") from e
            self._log_client_error("Failed to update delivery", e, delivery_id=delivery_id)
            raise

        logger.info(
            "Delivery updated in DynamoDB",
            delivery_id=delivery_id,
            status=update.status,
            attempt_count=update.attempt_count
        )

    async def increment_endpoint_counters(
        self,
        endpoint_id: str,
        success: bool,
        at: datetime,
    ) -> EndpointCounters:
        """
        Atomically record an attempt outcome on an endpoint.

        Raises:
            KeyError: If the endpoint does not exist
            ClientError: If DynamoDB operation fails
        """
        timestamp = _serialize(at)
        if success:
            expression = 'ADD success_count :one SET failure_count = :zero, last_triggered_at = :now'
            values = {':one': 1, ':zero': 0, ':now': timestamp}
        else:
            expression = 'ADD failure_count :one SET last_failed_at = :now, last_triggered_at = :now'
            values = {':one': 1, ':now': timestamp}

        try:
            response = self._update_item(
                self.endpoints_table,
                Key={'id': endpoint_id},
                UpdateExpression=expression,
                ConditionExpression='attribute_exists(#id)',
                ExpressionAttributeNames={'#id': 'id'},
                ExpressionAttributeValues=values,
                ReturnValues='ALL_NEW',
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                raise KeyError(f"endpoint {endpoint_id} not found") from e
            self._log_client_error("Failed to update endpoint counters", e, endpoint_id=endpoint_id)
            raise

        attributes = response.get('Attributes', {})
        return EndpointCounters(
            endpoint_id=endpoint_id,
            success_count=_to_int(attributes.get('success_count', 0)),
            failure_count=_to_int(attributes.get('failure_count', 0)),
            is_active=attributes.get('is_active', True),
            last_triggered_at=parse_datetime(attributes.get('last_triggered_at')),
            last_failed_at=parse_datetime(attributes.get('last_failed_at')),
        )

    async def disable_endpoint(self, endpoint_id: str) -> None:
        """
        Mark an endpoint inactive.

        Raises:
            KeyError: If the endpoint does not exist
            ClientError: If DynamoDB operation fails
        """
        try:
            self._update_item(
                self.endpoints_table,
                Key={'id': endpoint_id},
                UpdateExpression='SET is_active = :inactive',
                ConditionExpression='attribute_exists(#id)',
                ExpressionAttributeNames={'#id': 'id'},
                ExpressionAttributeValues={':inactive': False},
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                raise KeyError(f"endpoint {endpoint_id} not found") from e
            self._log_client_error("Failed to disable endpoint", e, endpoint_id=endpoint_id)
            raise

        logger.info("Endpoint disabled in DynamoDB", endpoint_id=endpoint_id)

    @storage_retry
    def _get_item(self, table, item_id: str) -> Dict[str, Any]:
        return table.get_item(Key={'id': item_id}, ConsistentRead=True)

    @storage_retry
    def _put_item(self, table, item: Dict[str, Any]) -> None:
        table.put_item(Item=item)

    @storage_retry
    def _update_item(self, table, **kwargs) -> Dict[str, Any]:
        return table.update_item(**kwargs)

    @storage_retry
    def _query_status(self, status: str, now: str, **kwargs) -> Dict[str, Any]:
        return self.deliveries_table.query(
            IndexName=STATUS_INDEX,
            KeyConditionExpression='#status = :status',
            FilterExpression=(
                '#attempt_count < #max_attempts AND '
                '(attribute_not_exists(#next_retry_at) OR #next_retry_at <= :now)'
            ),
            ExpressionAttributeNames={
                '#status': 'status',
                '#attempt_count': 'attempt_count',
                '#max_attempts': 'max_attempts',
                '#next_retry_at': 'next_retry_at',
            },
            ExpressionAttributeValues={':status': status, ':now': now},
            ScanIndexForward=True,  # Oldest first
            **kwargs
        )

    def _log_client_error(self, message: str, error: ClientError, **context) -> None:
        logger.error(
            message,
            error_code=error.response['Error']['Code'],
            error_message=error.response['Error']['Message'],
            **context
        )
