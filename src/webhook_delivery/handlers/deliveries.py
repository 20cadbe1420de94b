"""
Module: deliveries.py
Description: HTTP trigger for webhook delivery processing.

Implements the webhook-delivery endpoints:
- POST /webhook-delivery: process one delivery ({"delivery_id": ...}) or sweep
- GET /webhook-delivery: sweep all due deliveries (scheduler/cron caller)
- OPTIONS /webhook-delivery: CORS preflight
- POST /webhook-delivery/test: send a webhook.test event to an endpoint
- GET /webhook-delivery/deliveries/{delivery_id}: read back a delivery
- GET /webhook-delivery/endpoints/{endpoint_id}/health: read back endpoint health

Key Components:
- get_store(): Dependency providing the configured DeliveryStore
- get_orchestrator(): Dependency wiring executor, scheduler, and health tracker
- Run responses report "the run completed", not "every delivery succeeded"

Dependencies: FastAPI, typing, models, storage, delivery, config, utils
Author: BuildDesk Platform Team
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Response
from fastapi import status as status_codes
from fastapi.responses import JSONResponse

from webhook_delivery.config.settings import settings
from webhook_delivery.delivery.health import EndpointHealthTracker
from webhook_delivery.delivery.orchestrator import DeliveryOrchestrator
from webhook_delivery.delivery.push import PushDeliveryClient
from webhook_delivery.delivery.retry import RetryScheduler
from webhook_delivery.models.request import EndpointTestRequest, RunDeliveryRequest
from webhook_delivery.models.response import (
    DeliveryResult,
    DeliveryStatusResponse,
    EndpointHealthResponse,
    ErrorResponse,
    RunResponse,
)
from webhook_delivery.storage.base import DeliveryStore
from webhook_delivery.storage.dynamodb import DynamoDBDeliveryStore
from webhook_delivery.storage.memory import InMemoryDeliveryStore
from webhook_delivery.utils.logger import get_logger
from webhook_delivery.utils.metrics import MetricsClient

router = APIRouter(prefix="/webhook-delivery", tags=["webhook-delivery"])
logger = get_logger(__name__)

_memory_store: Optional[InMemoryDeliveryStore] = None


def get_store() -> DeliveryStore:
    """
    Dependency to get the delivery store.

    Returns a DynamoDB store unless settings.storage_backend is "memory",
    in which case a process-wide in-memory store is shared across requests.
    """
    global _memory_store

    if settings.storage_backend == "memory":
        if _memory_store is None:
            _memory_store = InMemoryDeliveryStore()
        return _memory_store

    return DynamoDBDeliveryStore(
        endpoints_table_name=settings.endpoints_table_name,
        deliveries_table_name=settings.deliveries_table_name,
        region_name=settings.aws_region
    )


def get_metrics_client() -> Optional[MetricsClient]:
    """Dependency to get the CloudWatch metrics client, if metrics are enabled."""
    if not settings.metrics_enabled:
        return None
    return MetricsClient(namespace=settings.metrics_namespace, region_name=settings.aws_region)


def build_orchestrator(
    store: DeliveryStore,
    metrics_client: Optional[MetricsClient] = None
) -> DeliveryOrchestrator:
    """Wire a DeliveryOrchestrator from settings."""
    executor = PushDeliveryClient(
        timeout_seconds=settings.delivery_timeout_seconds,
        response_body_limit=settings.response_body_limit,
        user_agent=settings.user_agent
    )
    return DeliveryOrchestrator(
        store=store,
        executor=executor,
        scheduler=RetryScheduler(backoff_base_minutes=settings.backoff_base_minutes),
        health_tracker=EndpointHealthTracker(
            store,
            failure_threshold=settings.failure_threshold,
            metrics_client=metrics_client
        ),
        page_size=settings.sweep_page_size,
        concurrency=settings.sweep_concurrency,
        metrics_client=metrics_client
    )


def get_orchestrator(
    store: DeliveryStore = Depends(get_store),
    metrics_client: Optional[MetricsClient] = Depends(get_metrics_client)
) -> DeliveryOrchestrator:
    """Dependency to get a configured DeliveryOrchestrator."""
    return build_orchestrator(store, metrics_client)


async def _run(orchestrator: DeliveryOrchestrator, delivery_id: Optional[str]):
    try:
        results = await orchestrator.run(delivery_id)
    except Exception as e:
        logger.error(
            "Webhook delivery run failed",
            delivery_id=delivery_id,
            error=str(e),
            error_type=type(e).__name__
        )
        return JSONResponse(
            status_code=status_codes.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error="Webhook delivery failed", details=str(e)).model_dump()
        )

    return RunResponse(success=True, processed=len(results), results=results)


@router.post(
    "",
    response_model=RunResponse,
    responses={500: {"model": ErrorResponse}}
)
async def run_deliveries(
    request: Optional[RunDeliveryRequest] = Body(default=None),
    orchestrator: DeliveryOrchestrator = Depends(get_orchestrator)
):
    """
    Process one delivery, or sweep when no delivery_id is given.

    Example:
        POST /webhook-delivery
        {"delivery_id": "5f1c9a0e-4a8e-4f55-9b59-0d3f1e0a2b7c"}

        Response (200):
        {"success": true, "processed": 1, "results": [{"delivery_id": "...", "success": true, ...}]}
    """
    delivery_id = request.delivery_id if request else None
    return await _run(orchestrator, delivery_id)


@router.get(
    "",
    response_model=RunResponse,
    responses={500: {"model": ErrorResponse}}
)
async def sweep_deliveries(orchestrator: DeliveryOrchestrator = Depends(get_orchestrator)):
    """Sweep all due deliveries."""
    return await _run(orchestrator, None)


@router.options("")
async def preflight() -> Response:
    """CORS preflight. No processing happens."""
    return Response(
        status_code=status_codes.HTTP_200_OK,
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
            "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
        }
    )


@router.post("/test", response_model=DeliveryResult)
async def send_test_delivery(
    request: EndpointTestRequest,
    orchestrator: DeliveryOrchestrator = Depends(get_orchestrator)
) -> DeliveryResult:
    """
    Send a webhook.test event to one endpoint.

    Raises:
        HTTPException: 404 if the endpoint does not exist
    """
    result = await orchestrator.send_test_event(request.endpoint_id)
    if result is None:
        raise HTTPException(
            status_code=status_codes.HTTP_404_NOT_FOUND,
            detail=f"Endpoint {request.endpoint_id} not found"
        )
    return result


@router.get("/deliveries/{delivery_id}", response_model=DeliveryStatusResponse)
async def get_delivery_status(
    delivery_id: str,
    store: DeliveryStore = Depends(get_store)
) -> DeliveryStatusResponse:
    """
    Read back the stored state of a delivery.

    Raises:
        HTTPException: 404 if the delivery does not exist
    """
    delivery = await store.get_delivery(delivery_id)
    if delivery is None:
        raise HTTPException(
            status_code=status_codes.HTTP_404_NOT_FOUND,
            detail=f"Delivery {delivery_id} not found"
        )
    return DeliveryStatusResponse.from_delivery(delivery)


@router.get("/endpoints/{endpoint_id}/health", response_model=EndpointHealthResponse)
async def get_endpoint_health(
    endpoint_id: str,
    store: DeliveryStore = Depends(get_store)
) -> EndpointHealthResponse:
    """
    Read back the health counters of an endpoint.

    Raises:
        HTTPException: 404 if the endpoint does not exist
    """
    endpoint = await store.get_endpoint(endpoint_id)
    if endpoint is None:
        raise HTTPException(
            status_code=status_codes.HTTP_404_NOT_FOUND,
            detail=f"Endpoint {endpoint_id} not found"
        )
    return EndpointHealthResponse.from_endpoint(endpoint)
