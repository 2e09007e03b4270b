# ovr_core/common/events.py
import logging
from collections import defaultdict
from typing import Callable, Dict, List, Any

from django.db import transaction

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], None]

_registry: Dict[str, List[Handler]] = defaultdict(list)


def subscribe(event_name: str):
    """
    Decorator to register an event handler.
    Usage:
        @subscribe("incident.submitted")
        def handler(payload): ...
    """
    def _decorator(fn: Handler) -> Handler:
        _registry[event_name].append(fn)
        return fn
    return _decorator


def subscribers(event_name: str) -> List[Handler]:
    return list(_registry.get(event_name, []))


def publish(event_name: str, payload: Dict[str, Any]) -> None:
    """
    Publish an event to in-process subscribers.
    Keep payloads ID-based to avoid cross-app imports.

    Dispatch is fire-and-forget: a failing handler is logged and the
    remaining handlers still run.
    """
    for handler in _registry.get(event_name, []):
        try:
            handler(payload)
        except Exception:
            logger.exception("Event handler %s failed for %s", getattr(handler, "__name__", handler), event_name)


def publish_on_commit(event_name: str, payload: Dict[str, Any]) -> None:
    """
    Defer publish until the surrounding transaction commits, so a rolled-back
    transition never notifies anyone.
    """
    transaction.on_commit(lambda: publish(event_name, payload))
