import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import Response
from starlette.datastructures import MutableHeaders

from mirror_proxy.rules import is_allowed
from mirror_proxy.vars import ProxyConfig

logger = logging.getLogger("uvicorn.error")

ALLOWED_METHODS = "GET,HEAD,POST,OPTIONS"
EXPOSED_HEADERS = "Content-Length,Content-Type,Cache-Control,ETag,Accept-Ranges"
PREFLIGHT_MAX_AGE = "86400"


def set_cors_headers(
    headers: MutableHeaders, origin: Optional[str], config: ProxyConfig
) -> None:
    """Reflect an allowed Origin with credentials; always vary on Origin."""
    if origin:
        if is_allowed(origin, config.allowed_origins, config.blocked_origins):
            headers["Access-Control-Allow-Origin"] = origin
            headers["Access-Control-Allow-Credentials"] = "true"
        else:
            logger.debug(f"[CORS] Origin {origin!r} not allowed")
    headers.add_vary_header("Origin")


def preflight_response(request: Request, config: ProxyConfig) -> Response:
    response = Response(status_code=204)
    set_cors_headers(response.headers, request.headers.get("origin"), config)
    response.headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
    requested = request.headers.get("access-control-request-headers")
    if requested:
        response.headers["Access-Control-Allow-Headers"] = requested
    response.headers["Access-Control-Max-Age"] = PREFLIGHT_MAX_AGE
    return response


def add_cors_middleware(app: FastAPI) -> None:
    """Answer OPTIONS locally and decorate every other response with CORS headers."""

    @app.middleware("http")
    async def cors_middleware(request: Request, call_next):
        config: ProxyConfig = request.app.state.config
        if config.disable_cors:
            return await call_next(request)

        if request.method == "OPTIONS":
            return preflight_response(request, config)

        response = await call_next(request)
        set_cors_headers(response.headers, request.headers.get("origin"), config)
        response.headers["Access-Control-Expose-Headers"] = EXPOSED_HEADERS
        return response
