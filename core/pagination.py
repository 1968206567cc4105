from rest_framework.pagination import PageNumberPagination


class StandardPagination(PageNumberPagination):
    """``?page=N&limit=M`` pagination returning ``count/next/previous/results``."""
    page_size = 20
    page_size_query_param = 'limit'
    max_page_size = 100


def paginate(request, queryset, serializer_class, *, context=None):
    """Paginate ``queryset`` for a function-based view."""
    paginator = StandardPagination()
    page = paginator.paginate_queryset(queryset, request)
    ctx = {'request': request, **(context or {})}
    data = serializer_class(page, many=True, context=ctx).data
    return paginator.get_paginated_response(data)
