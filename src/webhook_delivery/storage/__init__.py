"""
Module: storage
Description: Package initialization for data persistence layer.

This package contains storage implementations for webhook records:
- base: DeliveryStore interface
- dynamodb: DynamoDB-backed store
- memory: in-memory store for tests and local runs
"""

from .base import DeliveryStore
from .memory import InMemoryDeliveryStore

__all__ = ["DeliveryStore", "InMemoryDeliveryStore"]
