# ovr_core/common/log_context.py
from __future__ import annotations

import logging
import threading

_local = threading.local()


def set_request_id(request_id: str | None) -> None:
    _local.request_id = request_id


def get_request_id() -> str:
    return getattr(_local, "request_id", None) or "-"


class RequestIdFilter(logging.Filter):
    """Adds `request_id` to every record so the formatter can print it."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        return True
