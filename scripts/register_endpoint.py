#!/usr/bin/env python3
"""
Script: register_endpoint.py
Description: Register a webhook endpoint with a generated signing secret.

Generates a signing secret, stores the endpoint in the endpoints table,
and prints the secret so the subscriber can verify X-Webhook-Signature.

Usage:
    python scripts/register_endpoint.py https://hooks.example.com/builddesk --events "project.*"
    python scripts/register_endpoint.py https://hooks.example.com/in --events "*" --description "Audit sink"
    python scripts/register_endpoint.py https://hooks.example.com/slow --timeout 10 --retry-attempts 3

Security Note:
    The secret is shown only once. Store it with the subscriber.
    This script requires AWS credentials and access to DynamoDB.
"""

import argparse
import asyncio
import sys
from typing import List, Optional
from uuid import uuid4

from botocore.exceptions import ClientError

from webhook_delivery.config.settings import settings
from webhook_delivery.delivery.signing import generate_secret
from webhook_delivery.models.webhook import WebhookEndpoint
from webhook_delivery.storage.dynamodb import DynamoDBDeliveryStore
from webhook_delivery.utils.logger import get_logger

logger = get_logger(__name__)


async def register(
    url: str,
    events: List[str],
    description: Optional[str],
    timeout_seconds: Optional[int] = None,
    retry_attempts: Optional[int] = None,
) -> WebhookEndpoint:
    """
    Store a new active endpoint.

    Returns:
        The stored endpoint including its generated secret

    Raises:
        ClientError: If DynamoDB operation fails
    """
    store = DynamoDBDeliveryStore(
        endpoints_table_name=settings.endpoints_table_name,
        deliveries_table_name=settings.deliveries_table_name,
        region_name=settings.aws_region
    )

    endpoint = WebhookEndpoint(
        id=f"ep_{uuid4().hex[:12]}",
        url=url,
        secret=generate_secret(),
        description=description,
        subscribed_events=events,
        timeout_seconds=timeout_seconds,
        retry_attempts=retry_attempts,
    )
    await store.put_endpoint(endpoint)
    return endpoint


def main():
    """Main script execution."""
    parser = argparse.ArgumentParser(description="Register a webhook endpoint")
    parser.add_argument('url', help='Destination URL (http or https)')
    parser.add_argument(
        '--events',
        nargs='+',
        default=['*'],
        help='Subscription patterns: exact names, "*", or "namespace.*"'
    )
    parser.add_argument('--description', type=str, default=None, help='Owner-facing description')
    parser.add_argument('--timeout', type=int, default=None, help='Attempt timeout in seconds (1-30)')
    parser.add_argument('--retry-attempts', type=int, default=None, help='Attempt ceiling for new deliveries')

    args = parser.parse_args()

    try:
        endpoint = asyncio.run(register(
            args.url, args.events, args.description, args.timeout, args.retry_attempts
        ))
    except ClientError as e:
        logger.error(
            "Failed to register endpoint",
            error_code=e.response['Error']['Code'],
            error_message=e.response['Error']['Message'],
            table_name=settings.endpoints_table_name
        )
        sys.exit(1)

    print(f"Endpoint ID: {endpoint.id}")
    print(f"Signing secret: {endpoint.secret}")
    print("   WARNING: Store this secret securely! It will not be shown again.")


if __name__ == '__main__':
    main()
