"""
Package: webhook_delivery
Description: Outbound webhook delivery service.

Delivers queued webhook events to subscriber endpoints with HMAC signatures,
exponential-backoff retries, and per-endpoint health tracking.
"""

__version__ = "1.0.0"
