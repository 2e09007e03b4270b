# ovr_core/common/api/pagination.py
from __future__ import annotations

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class DefaultPagination(PageNumberPagination):
    page_size = 10
    page_size_query_param = "page_size"
    max_page_size = 100


def paginate(request, queryset, serializer_class, *, context: dict | None = None) -> Response:
    """
    Stable list contract: { count, next, previous, results }
    """
    p = DefaultPagination()
    context = {"request": request, **(context or {})}

    page = p.paginate_queryset(queryset, request)
    if page is not None:
        return p.get_paginated_response(serializer_class(page, many=True, context=context).data)

    return Response(serializer_class(queryset, many=True, context=context).data)
