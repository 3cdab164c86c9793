import logging
import time

from fastapi import Request
from fastapi.responses import JSONResponse

from ranking_service.app.errors import InternalError

access_logger = logging.getLogger("ranking_service.access")
logger = logging.getLogger(__name__)


async def recover(request: Request, call_next):
    """Last resort: anything that is not a RankingError becomes a generic 500."""
    try:
        return await call_next(request)
    except Exception:
        logger.exception("err_unknown %s %s", request.method, request.url.path)
        err = InternalError()
        return JSONResponse(status_code=err.code, content=err.to_response())


async def access_log(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000.0

    if "/health" not in request.url.path:
        access_logger.info(
            "latency=%.2fms method=%s url=%s proto=HTTP/%s status=%d",
            elapsed_ms,
            request.method,
            request.url,
            request.scope.get("http_version", "1.1"),
            response.status_code,
        )
    return response
