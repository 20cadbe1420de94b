"""
Package: delivery
Description: Webhook delivery pipeline.

Provides subscription matching, payload signing, signed push delivery,
retry scheduling, endpoint health tracking, and the orchestrator that
runs them for each queued delivery.
"""
