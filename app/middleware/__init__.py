"""Middleware package."""

import time

from fastapi import Request

from app.core.correlation import generate_correlation_id, is_valid_correlation_id

CORRELATION_HEADER = "X-Correlation-ID"

__all__ = ["timing_middleware", "CORRELATION_HEADER"]


async def timing_middleware(request: Request, call_next):
    """Add processing time and a correlation id to every response.

    A well-formed incoming X-Correlation-ID is echoed back; otherwise a new one is
    generated and exposed to handlers as ``request.state.correlation_id``.
    """
    incoming = request.headers.get(CORRELATION_HEADER)
    correlation_id = incoming if incoming and is_valid_correlation_id(incoming) else generate_correlation_id()
    request.state.correlation_id = correlation_id

    start = time.time()
    response = await call_next(request)
    duration_ms = int((time.time() - start) * 1000)
    response.headers["X-Process-Time-ms"] = str(duration_ms)
    response.headers[CORRELATION_HEADER] = correlation_id
    return response
