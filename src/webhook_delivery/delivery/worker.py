"""
Module: delivery/worker.py
Description: Scheduled Lambda for webhook delivery sweeps.

Invoked by an EventBridge schedule. Each invocation runs one sweep over
due deliveries; anything not reached before the invocation ends stays
pending/failed and is picked up by the next sweep.
"""

import asyncio
from typing import Any, Dict

from webhook_delivery.handlers.deliveries import build_orchestrator, get_metrics_client, get_store
from webhook_delivery.utils.logger import get_logger

logger = get_logger(__name__)


def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda handler for scheduled sweeps.

    A non-empty "delivery_id" key in the event processes that one delivery
    instead; an empty value runs a normal sweep.

    Args:
        event: EventBridge scheduled event (or {"delivery_id": ...})
        context: Lambda context

    Returns:
        {"processed": n, "results": [...]} with JSON-serializable results
    """
    delivery_id = (event or {}).get('delivery_id') or None
    orchestrator = build_orchestrator(get_store(), get_metrics_client())

    logger.info(
        "Scheduled webhook sweep started",
        delivery_id=delivery_id,
        request_id=getattr(context, 'aws_request_id', None)
    )

    results = asyncio.run(orchestrator.run(delivery_id))

    return {
        'processed': len(results),
        'results': [result.model_dump(mode='json') for result in results]
    }
