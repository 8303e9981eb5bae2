from starlette.middleware.base import BaseHTTPMiddleware

from crowdfund.core.metrics import http_requests_total, normalize_path

# Scrapes and probes are not counted
UNCOUNTED_PATHS = {"/metrics", "/healthz", "/readyz"}


class MetricsMiddleware(BaseHTTPMiddleware):
    """Count requests per method, normalized path and status."""

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        if request.url.path not in UNCOUNTED_PATHS:
            http_requests_total.inc(labels={
                "method": request.method.upper(),
                "path": normalize_path(request.url.path),
                "status": str(response.status_code),
            })
        return response
