# ovr_core/common/middleware.py
from __future__ import annotations

import re
import uuid

from django.utils.deprecation import MiddlewareMixin

from ovr_core.common.log_context import set_request_id

_SAFE_ID = re.compile(r"^[A-Za-z0-9\-_.]{1,64}$")


class RequestIdMiddleware(MiddlewareMixin):
    """
    Attaches request.request_id (from X-Request-Id when well-formed, else a new one),
    exposes it to log records, and echoes it back in the response header.

    The DRF error envelope reads the same attribute, so clients can correlate
    an error body with server logs.
    """

    HEADER = "X-Request-Id"

    def process_request(self, request):
        incoming = request.headers.get(self.HEADER)
        rid = incoming if incoming and _SAFE_ID.match(incoming) else uuid.uuid4().hex
        request.request_id = rid
        set_request_id(rid)

    def process_response(self, request, response):
        rid = getattr(request, "request_id", None)
        if rid:
            response[self.HEADER] = rid
        set_request_id(None)
        return response
