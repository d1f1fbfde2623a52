"""
Fallback chain: the ordered places a target may be encoded in a request.

1. subdomain   ``cdn--example--com.proxy.root/img.png``
2. path prefix ``/~cdn.example.com/img.png``, ``/https://...``
3. whole path  ``/cdn.example.com/img.png`` or a path on the fallback host
4. query       ``/?url=https://cdn.example.com/img.png``
5. root        ``/`` -> ROOT_PAGE or the fallback host
6. error page  ERROR_PAGE

Each state may decline (returns None), or produce a ResolutionAttempt that
is resolved and forwarded. The first forwarded response wins; when every
state declines the request ends in 404. The order is fixed, configuration
only switches individual states off.
"""

import logging
import re
from typing import Callable, List, Optional
from urllib.parse import urlencode

import httpx
from fastapi import Request
from fastapi.responses import PlainTextResponse, Response

from mirror_proxy.models import ResolutionAttempt
from mirror_proxy.proxy.forwarder import forward
from mirror_proxy.target import parse_target
from mirror_proxy.utils import raw_path, request_hostname
from mirror_proxy.vars import ProxyConfig

logger = logging.getLogger("uvicorn.error")

_PATH_MARKER = re.compile(r"^(?:[~-]|https?[:/])", re.IGNORECASE)

State = Callable[[Request, ProxyConfig], Optional[ResolutionAttempt]]


def _with_query(path: str, request: Request) -> str:
    query = request.url.query
    return f"{path}?{query}" if query else path


def subdomain_target(request: Request, config: ProxyConfig) -> Optional[ResolutionAttempt]:
    root = config.subdomain_proxy_root
    if config.disable_subdomain_proxy or not root:
        return None
    hostname = request_hostname(request)
    if hostname == config.proxy_deploy_domain or not hostname.endswith("." + root):
        return None

    label = hostname[: -len(root) - 1]
    if config.subdomain_separator:
        label = label.replace(config.subdomain_separator, ".")
    return ResolutionAttempt(_with_query(label + raw_path(request), request))


def path_prefix_target(request: Request, config: ProxyConfig) -> Optional[ResolutionAttempt]:
    if config.disable_path_proxy:
        return None
    remainder = raw_path(request)[1:]
    if not _PATH_MARKER.match(remainder):
        return None
    return ResolutionAttempt(_with_query(remainder, request))


def whole_path_target(request: Request, config: ProxyConfig) -> Optional[ResolutionAttempt]:
    path = raw_path(request)
    if config.disable_whole_path_proxy or path == "/":
        return None
    return ResolutionAttempt(_with_query(path[1:], request), allow_fallback=True)


def query_param_target(request: Request, config: ProxyConfig) -> Optional[ResolutionAttempt]:
    name = config.param_name
    if config.disable_param_proxy or not name or name not in request.query_params:
        return None

    value = request.query_params[name]
    if not config.disable_param_merge:
        remaining = [
            (key, item)
            for key, item in request.query_params.multi_items()
            if key != name
        ]
        if remaining:
            joiner = "&" if "?" in value else "?"
            value = f"{value}{joiner}{urlencode(remaining)}"
    return ResolutionAttempt(value)


def root_target(request: Request, config: ProxyConfig) -> Optional[ResolutionAttempt]:
    if config.disable_root_proxy or raw_path(request) != "/":
        return None
    if config.root_page:
        return ResolutionAttempt(config.root_page)
    if config.fallback_host:
        return ResolutionAttempt(config.fallback_host)
    return None


def error_page_target(request: Request, config: ProxyConfig) -> Optional[ResolutionAttempt]:
    if not config.error_page:
        return None
    return ResolutionAttempt(config.error_page)


STATES: List[State] = [
    subdomain_target,
    path_prefix_target,
    whole_path_target,
    query_param_target,
    root_target,
    error_page_target,
]


async def handle(
    request: Request,
    config: ProxyConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Response:
    """Walk the states in order and return the first forwarded response."""
    for state in STATES:
        attempt = state(request, config)
        if attempt is None:
            continue

        target = parse_target(
            attempt.encoded_target,
            config,
            config.default_protocol,
            config.fallback_host,
            skip_fallback=not attempt.allow_fallback,
        )
        if target is None:
            logger.debug(f"[Chain] {state.__name__}: no target in {attempt.encoded_target!r}")
            continue

        response = await forward(request, target, config, transport=transport)
        if response is not None:
            return response
        logger.debug(f"[Chain] {state.__name__}: {target.host!r} not usable")

    logger.info(f"[Chain] No target for {request.method} {request.url.path}")
    return PlainTextResponse("Not Found", status_code=404)
