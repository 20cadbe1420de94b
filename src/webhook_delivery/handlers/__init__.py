"""
Module: handlers
Description: Package initialization for API endpoint handlers.

This package contains FastAPI route handlers for the webhook delivery service:
- deliveries: run/sweep trigger, test ping, and status read-back endpoints
"""

__all__ = []
