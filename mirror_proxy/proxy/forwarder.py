import logging
from typing import AsyncIterator, Optional
from urllib.parse import urlsplit

import httpx
from fastapi import Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse
from opentelemetry import trace

from mirror_proxy.models import ParsedTarget
from mirror_proxy.rules import (
    apply_header_rules,
    is_allowed,
    matches_any,
    parse_pattern_list,
)
from mirror_proxy.utils import client_ip
from mirror_proxy.utils.traced_requests import traced_request
from mirror_proxy.vars import ProxyConfig

tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

# Hop-by-hop headers that should NOT be forwarded (RFC 2616)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

BODYLESS_METHODS = {"GET", "HEAD"}


def target_hostname(target: ParsedTarget) -> str:
    """Hostname of the target without port or IPv6 brackets, lowercased."""
    try:
        hostname = urlsplit(f"//{target.host}").hostname
    except ValueError:
        hostname = None
    return (hostname or target.host).lower()


def is_proxy_loop(target: ParsedTarget, config: ProxyConfig) -> bool:
    """True when the target points back at this proxy."""
    hostname = target_hostname(target)
    if config.proxy_deploy_domain and hostname == config.proxy_deploy_domain:
        return True
    root = config.subdomain_proxy_root
    if root and (hostname == root or hostname.endswith("." + root)):
        return True
    return False


def host_allowed(target: ParsedTarget, config: ProxyConfig) -> bool:
    """
    Check the target against ALLOWED_HOSTS / BLOCKED_HOSTS.

    Both the bare hostname and ``hostname:port`` are tested, taken from the
    authority httpx will connect to rather than the raw host string. A block
    on either form rejects, an allow on either form admits.
    """
    hostname = target_hostname(target)
    forms = {hostname}
    try:
        port = urlsplit(f"//{target.host}").port
    except ValueError:
        port = None
    if port is not None:
        bracketed = f"[{hostname}]" if ":" in hostname else hostname
        forms.add(f"{bracketed}:{port}")
    allow = parse_pattern_list(config.allowed_hosts or "")
    block = parse_pattern_list(config.blocked_hosts or "")
    if allow and not any(matches_any(form, allow) for form in forms):
        return False
    return not any(matches_any(form, block) for form in forms)


def filter_request(
    request: Request, target: ParsedTarget, config: ProxyConfig
) -> Optional[Response]:
    """
    Check caller IP, target host and method against the allow/block lists.

    Returns the rejection response, or None when the request may proceed.
    """
    caller_ip = client_ip(request, config.client_ip_header)
    if not is_allowed(caller_ip, config.allowed_ips, config.blocked_ips):
        logger.warning(f"[Proxy] Caller IP {caller_ip!r} rejected for {target.host}")
        return PlainTextResponse("Forbidden", status_code=403)

    if not host_allowed(target, config):
        logger.warning(f"[Proxy] Target host {target.host!r} rejected")
        return PlainTextResponse("Forbidden", status_code=403)

    if not is_allowed(request.method, config.allowed_methods, config.blocked_methods):
        logger.warning(f"[Proxy] Method {request.method} rejected for {target.host}")
        return PlainTextResponse("Method Not Allowed", status_code=405)

    return None


def prepare_headers(
    request: Request, target: ParsedTarget, config: ProxyConfig
) -> httpx.Headers:
    """
    Build the outbound request headers.

    Drops Host (the transport sets its own) and hop-by-hop headers, spoofs
    Referer as the target origin unless disabled, then applies the
    configured request header rules.
    """
    headers = httpx.Headers(request.headers.raw)
    for name in HOP_BY_HOP_HEADERS | {"host"}:
        headers.pop(name, None)

    if not config.disable_referer_spoof:
        headers["Referer"] = f"{target.origin}/"

    apply_header_rules(headers, config.request_headers)
    return headers


def prepare_response_headers(
    upstream: httpx.Response, config: ProxyConfig
) -> httpx.Headers:
    """Upstream headers minus hop-by-hop ones, then the response header rules."""
    headers = httpx.Headers(
        [
            (name, value)
            for name, value in upstream.headers.raw
            if name.decode("latin-1").lower() not in HOP_BY_HOP_HEADERS
        ]
    )
    apply_header_rules(headers, config.response_headers)
    return headers


async def forward(
    request: Request,
    target: ParsedTarget,
    config: ProxyConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[Response]:
    """
    Forward the inbound request to ``target`` and stream the answer back.

    Returns None when the target is unusable (empty host, points back at
    the proxy, or does not form a valid URL) so the caller can try the next
    source. Filtering rejections come back as 403/405 responses. Transport
    failures propagate as ``httpx.HTTPError``.
    """
    if not target.host:
        logger.debug(f"[Proxy] Empty host in {target}, skipping")
        return None

    if is_proxy_loop(target, config):
        logger.debug(f"[Proxy] {target.host} points back at the proxy, skipping")
        return None

    caller_ip = client_ip(request, config.client_ip_header)
    with traced_request(
        tracer,
        "proxy_request",
        target,
        request.method,
        caller_ip,
        {"proxy.follow_redirects": not config.disable_redirect_follow},
    ) as span:
        rejection = filter_request(request, target, config)
        if rejection is not None:
            span.set_attribute("proxy.decision", "rejected")
            span.set_attribute("proxy.status_code", rejection.status_code)
            return rejection
        span.set_attribute("proxy.decision", "forwarded")

        headers = prepare_headers(request, target, config)
        content = None if request.method in BODYLESS_METHODS else request.stream()

        client = httpx.AsyncClient(
            transport=transport,
            follow_redirects=not config.disable_redirect_follow,
            timeout=httpx.Timeout(config.proxy_timeout),
        )
        try:
            upstream_request = client.build_request(
                request.method, target.url, headers=headers, content=content
            )
        except httpx.InvalidURL as e:
            await client.aclose()
            logger.debug(f"[Proxy] Invalid target URL {target.url!r}: {e}")
            span.set_attribute("proxy.error", "invalid_url")
            return None

        try:
            upstream = await client.send(upstream_request, stream=True)
        except BaseException:
            await client.aclose()
            raise

        span.set_attribute("proxy.status_code", upstream.status_code)

        try:
            response_headers = prepare_response_headers(upstream, config)
        except BaseException:
            await upstream.aclose()
            await client.aclose()
            raise

        async def stream_body() -> AsyncIterator[bytes]:
            # Raw bytes: no decompression, the caller gets what upstream sent
            try:
                async for chunk in upstream.aiter_raw():
                    yield chunk
            finally:
                await upstream.aclose()
                await client.aclose()

        response = StreamingResponse(stream_body(), status_code=upstream.status_code)
        response.raw_headers = [
            (name.lower(), value) for name, value in response_headers.raw
        ]
        return response
