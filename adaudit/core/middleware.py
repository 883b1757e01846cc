"""CORS and request-logging middleware."""

import uuid
import time
import logging

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from adaudit.core.config import settings

logger = logging.getLogger("adaudit.http")

REQUEST_ID_HEADER = "X-Request-Id"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and log it with the resolved user.

    An incoming ``X-Request-Id`` is reused so ids survive a proxy hop.
    ``request.state.user_id`` is filled by the session dependency when a
    route asks for the caller's identity.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        request.state.user_id = None
        start = time.perf_counter()

        response: Response = await call_next(request)

        duration = round((time.perf_counter() - start) * 1000, 2)
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time-Ms"] = str(duration)

        logger.info(
            "%s %s %s %sms request_id=%s user=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration,
            request_id,
            request.state.user_id,
        )
        return response


def setup_middleware(app: FastAPI) -> None:
    """Configure all middleware for the application."""
    # Cookies carry the session, so credentials must be allowed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)
