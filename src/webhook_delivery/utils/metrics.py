"""
Module: metrics.py
Description: CloudWatch custom metrics publishing.

Publishes delivery metrics to CloudWatch for monitoring delivery success
rates, dead-lettering, endpoint auto-disables, and sweep sizes.

Key Components:
- MetricsClient: CloudWatch metrics client
- put_metric(): Publish individual metrics
- Graceful error handling for metrics failures

Dependencies: boto3, botocore, typing, logger
Author: BuildDesk Platform Team
"""

from typing import Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from webhook_delivery.utils.logger import get_logger

logger = get_logger(__name__)


class MetricsClient:
    """CloudWatch metrics client."""

    def __init__(self, namespace: str = "WebhookDelivery", region_name: Optional[str] = None):
        """
        Initialize metrics client.

        Args:
            namespace: CloudWatch metrics namespace
            region_name: AWS region for the CloudWatch client
        """
        self.namespace = namespace
        self.cloudwatch = boto3.client('cloudwatch', region_name=region_name)

        logger.info(
            "Metrics client initialized",
            namespace=namespace
        )

    def put_metric(
        self,
        metric_name: str,
        value: float,
        unit: str = 'Count',
        dimensions: Optional[Dict[str, str]] = None
    ) -> None:
        """
        Publish a metric to CloudWatch.

        Failures are logged and swallowed so metrics never fail a delivery.

        Args:
            metric_name: Name of the metric
            value: Metric value
            unit: Metric unit (Count, Milliseconds, etc.)
            dimensions: Optional metric dimensions
        """
        metric_data = {
            'MetricName': metric_name,
            'Value': value,
            'Unit': unit
        }

        if dimensions:
            metric_data['Dimensions'] = [
                {'Name': k, 'Value': v}
                for k, v in dimensions.items()
            ]

        try:
            self.cloudwatch.put_metric_data(
                Namespace=self.namespace,
                MetricData=[metric_data]
            )

            logger.debug(
                "Metric published to CloudWatch",
                metric_name=metric_name,
                value=value,
                unit=unit,
                namespace=self.namespace
            )

        except (BotoCoreError, ClientError) as e:
            logger.warning(
                "Failed to publish metric",
                metric_name=metric_name,
                value=value,
                error=str(e),
                namespace=self.namespace
            )
