"""
Module: utils
Description: Package initialization for utility functions.

Current utilities:
- clock: UTC time helpers
- logger: Structured logging configuration and helpers
- metrics: CloudWatch metrics publishing
"""

__all__ = []
