"""
Logging Middleware for Request/Response Logging

This middleware logs all HTTP requests and responses for observability.
It captures:
- Request method and path
- Response status code
- Request processing time
- Client IP address

Every request is tagged with a request id (taken from an incoming
X-Request-ID header or freshly generated) that is attached to all log
records emitted while handling it and echoed back in the response.
"""

import time
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from shortlink.core.logging_config import set_request_id, request_id_var
from shortlink.services.request_context import get_client_ip

logger = logging.getLogger("shortlink.access")


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for logging HTTP requests and responses.

    It wraps the request/response cycle to add logging without
    modifying endpoint code.
    """

    async def dispatch(self, request: Request, call_next):
        """
        Process request and log details.

        Args:
            request: The incoming HTTP request
            call_next: The next middleware/endpoint in the chain

        Returns:
            Response object
        """
        token = request_id_var.set(None)
        request_id = set_request_id(request.headers.get("X-Request-ID"))
        client_ip = get_client_ip(request)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            process_time = time.perf_counter() - start_time

            # Format: METHOD PATH STATUS_CODE PROCESS_TIME_MS CLIENT_IP
            logger.info(
                f"{request.method} {request.url.path} "
                f"{response.status_code} {process_time*1000:.2f}ms "
                f"IP:{client_ip}"
            )
        except Exception:
            logger.error(
                f"{request.method} {request.url.path} failed IP:{client_ip}",
                exc_info=True
            )
            raise
        finally:
            request_id_var.reset(token)

        response.headers["X-Process-Time"] = str(process_time)
        response.headers["X-Request-ID"] = request_id
        return response


def add_logging_middleware(app):
    """
    Add logging middleware to FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_middleware(LoggingMiddleware)
