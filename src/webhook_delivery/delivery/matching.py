"""
Module: matching.py
Description: Event subscription matching.

Decides whether an endpoint's subscription patterns cover an event type.
Supported patterns:
- "*": every event
- "project.created": that exact event type
- "project.*": any event type starting with "project."

A namespace wildcard only matches across a dot boundary, so "proj.*"
does not match "project.created" and "project.*" does not match "project".
"""

from typing import Iterable

WILDCARD = "*"
NAMESPACE_WILDCARD_SUFFIX = ".*"


def matches(subscribed_events: Iterable[str], event_type: str) -> bool:
    """
    Return True if any subscription pattern covers event_type.

    Args:
        subscribed_events: Endpoint subscription patterns
        event_type: Dot-namespaced event type, e.g. "project.created"

    Returns:
        True when the event should be delivered to the endpoint

    Example:
        >>> matches(["project.*"], "project.created")
        True
        >>> matches(["proj.*"], "project.created")
        False
    """
    if not event_type:
        return False

    for pattern in subscribed_events or ():
        if not isinstance(pattern, str) or not pattern:
            continue
        if pattern == WILDCARD or pattern == event_type:
            return True
        if pattern.endswith(NAMESPACE_WILDCARD_SUFFIX):
            # Keep the trailing dot so the prefix ends on a namespace boundary
            prefix = pattern[:-1]
            if len(prefix) > 1 and event_type.startswith(prefix):
                return True

    return False
