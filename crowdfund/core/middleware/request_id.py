import logging
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from crowdfund.core.logging import latency_bucket_ms, request_id_ctx_var
from crowdfund.core.metrics import normalize_path

REQUEST_ID_HEADER = "x-request-id"

logger = logging.getLogger("crowdfund")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Correlate everything a request does under one id.

    The caller's X-Request-Id is reused when present. The id is exposed on
    request.state, in the logging context var and on the response header.
    """

    async def dispatch(self, request, call_next):
        rid = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        request.state.request_id = rid
        token = request_id_ctx_var.set(rid)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = rid
            logger.info(
                f"{request.method} {normalize_path(request.url.path)} -> {response.status_code}",
                extra={
                    "request_id": rid,
                    "latency_bucket": latency_bucket_ms((time.perf_counter() - started) * 1000),
                },
            )
            return response
        finally:
            request_id_ctx_var.reset(token)
