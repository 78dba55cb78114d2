import logging
import time
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        start_time = time.time()
        method = request.method
        path = request.url.path

        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = round((time.time() - start_time) * 1000, 2)
            logger.error(f"[{request_id}] {method} {path} - ERROR after {duration_ms}ms: {exc}")
            raise

        duration_ms = round((time.time() - start_time) * 1000, 2)
        log_level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(log_level, f"[{request_id}] {method} {path} - {response.status_code} ({duration_ms}ms)")

        response.headers["X-Request-ID"] = request_id
        return response
