"""
Module: conftest.py
Description: Shared pytest fixtures for webhook delivery tests.

Provides reusable fixtures for endpoints, deliveries, stores, and a fixed
clock. Uses moto for AWS service mocking and pytest-httpx for outbound
HTTP so tests never touch the network.
"""

import os

# Must be set before webhook_delivery.config.settings is imported
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("METRICS_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")

from datetime import datetime, timezone

import boto3
import pytest
import pytest_asyncio
from moto import mock_aws

from webhook_delivery.delivery.push import PushDeliveryClient
from webhook_delivery.models.webhook import WebhookDelivery, WebhookEndpoint
from webhook_delivery.storage.dynamodb import STATUS_INDEX, DynamoDBDeliveryStore
from webhook_delivery.storage.memory import InMemoryDeliveryStore

ENDPOINTS_TABLE = "test-webhook-endpoints"
DELIVERIES_TABLE = "test-webhook-deliveries"
ENDPOINT_URL = "https://hooks.example.com/builddesk"


class FixedClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def now():
    """Fixed reference time used across delivery tests."""
    return datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def clock(now):
    """Clock fixed at `now`; assign clock.now to advance it."""
    return FixedClock(now)


@pytest.fixture
def sample_endpoint():
    """Active endpoint subscribed to all project events."""
    return WebhookEndpoint(
        id="ep_project_hooks",
        url=ENDPOINT_URL,
        secret="whsec_test_secret",
        subscribed_events=["project.*"],
        custom_headers={"X-Tenant": "acme-builders"},
    )


@pytest.fixture
def sample_delivery(sample_endpoint, now):
    """Pending delivery of a project.created event."""
    return WebhookDelivery(
        id="dlv_0001",
        endpoint_id=sample_endpoint.id,
        event_type="project.created",
        payload={"project_id": "prj_42", "name": "Harbor Tower", "budget": 1250000.5},
        created_at=now,
    )


@pytest.fixture
def memory_store():
    """Empty in-memory delivery store."""
    return InMemoryDeliveryStore()


@pytest_asyncio.fixture
async def seeded_store(memory_store, sample_endpoint, sample_delivery):
    """In-memory store holding sample_endpoint and sample_delivery."""
    await memory_store.put_endpoint(sample_endpoint)
    await memory_store.put_delivery(sample_delivery)
    return memory_store


@pytest.fixture
def executor():
    """Push delivery client with a short timeout for tests."""
    return PushDeliveryClient(timeout_seconds=5)


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake AWS credentials so boto3 never reaches real AWS."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def mock_dynamodb_tables(aws_credentials):
    """
    Create mock DynamoDB tables for endpoints and deliveries.

    Uses moto to mock AWS DynamoDB with the same schema as production.
    """
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')

        endpoints = dynamodb.create_table(
            TableName=ENDPOINTS_TABLE,
            KeySchema=[{'AttributeName': 'id', 'KeyType': 'HASH'}],
            AttributeDefinitions=[{'AttributeName': 'id', 'AttributeType': 'S'}],
            BillingMode='PAY_PER_REQUEST'
        )

        deliveries = dynamodb.create_table(
            TableName=DELIVERIES_TABLE,
            KeySchema=[{'AttributeName': 'id', 'KeyType': 'HASH'}],
            AttributeDefinitions=[
                {'AttributeName': 'id', 'AttributeType': 'S'},
                {'AttributeName': 'status', 'AttributeType': 'S'},
                {'AttributeName': 'created_at', 'AttributeType': 'S'},
            ],
            GlobalSecondaryIndexes=[
                {
                    'IndexName': STATUS_INDEX,
                    'KeySchema': [
                        {'AttributeName': 'status', 'KeyType': 'HASH'},
                        {'AttributeName': 'created_at', 'KeyType': 'RANGE'},
                    ],
                    'Projection': {'ProjectionType': 'ALL'}
                }
            ],
            BillingMode='PAY_PER_REQUEST'
        )

        yield endpoints, deliveries


@pytest.fixture
def dynamodb_store(mock_dynamodb_tables):
    """DynamoDBDeliveryStore bound to the mocked tables."""
    return DynamoDBDeliveryStore(
        endpoints_table_name=ENDPOINTS_TABLE,
        deliveries_table_name=DELIVERIES_TABLE,
        region_name='us-east-1'
    )
