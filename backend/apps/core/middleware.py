"""
Core middleware.
"""

from collections.abc import Callable
from uuid import uuid4

from django.http import HttpRequest, HttpResponse

from apps.core.logging import bind_contextvars, clear_contextvars

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware:
    """
    Binds a per-request trace ID to the structlog context.

    Reuses the caller's X-Request-ID when present so a webhook delivery can be
    traced through the load balancer logs. The ID is echoed on the response.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        trace_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())

        clear_contextvars()
        bind_contextvars(
            correlation_id=trace_id,
            **{"http.method": request.method, "http.url_details.path": request.path},
        )
        try:
            response = self.get_response(request)
        finally:
            clear_contextvars()

        response[REQUEST_ID_HEADER] = trace_id
        return response
