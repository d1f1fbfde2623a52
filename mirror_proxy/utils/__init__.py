from typing import Optional

from starlette.requests import Request


def client_ip(request: Request, header_name: Optional[str]) -> str:
    """Caller IP from the trusted proxy header, falling back to the socket peer."""
    if header_name:
        forwarded = request.headers.get(header_name, "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return ""


def request_hostname(request: Request) -> str:
    """Inbound hostname without port, lowercased."""
    hostname = request.url.hostname or request.headers.get("host", "").split(":")[0]
    return (hostname or "").lower()


def raw_path(request: Request) -> str:
    """The request path as sent on the wire, percent-encoding intact."""
    raw = request.scope.get("raw_path")
    if raw:
        return raw.decode("latin-1")
    return request.url.path
