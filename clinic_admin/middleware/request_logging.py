import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and log how it ended"""

    # Routes that don't need request logging
    EXCLUDED_ROUTES = [
        "/health",
        "/docs",
        "/redoc",
    ]

    async def dispatch(self, request: Request, call_next):
        if any(request.url.path.startswith(route) for route in self.EXCLUDED_ROUTES):
            return await call_next(request)

        start_time = time.time()
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        logger.info(f"Request started: {request_id} {request.method} {request.url.path}")

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"Request crashed: {request_id} {request.method} {request.url.path}")
            raise

        processing_time = time.time() - start_time
        if response.status_code < 400:
            logger.info(
                f"Request completed: {request_id} {request.method} {request.url.path} "
                f"- {response.status_code} in {processing_time:.3f}s"
            )
        else:
            logger.warning(
                f"Request failed: {request_id} {request.method} {request.url.path} "
                f"- {response.status_code} in {processing_time:.3f}s"
            )

        response.headers["X-Request-ID"] = request_id
        return response
