# Ensure tests import the service package from this checkout first.
import os
import sys
from typing import Dict, Optional
from urllib.parse import unquote

import pytest
from starlette.requests import Request

SERVICE_ROOT = os.path.dirname(__file__)

if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

from mirror_proxy.utils_tests.upstream_mock import UpstreamRecorder  # noqa: E402


@pytest.fixture
def upstream():
    return UpstreamRecorder()


@pytest.fixture
def make_request():
    """Factory for Starlette requests built straight from an ASGI scope."""

    def _make(
        method: str = "GET",
        path: str = "/",
        query: str = "",
        headers: Optional[Dict[str, str]] = None,
        host: str = "proxy.test",
        client_host: str = "203.0.113.7",
        body: bytes = b"",
    ) -> Request:
        raw_headers = [(b"host", host.encode("latin-1"))]
        for name, value in (headers or {}).items():
            raw_headers.append((name.lower().encode("latin-1"), value.encode("latin-1")))

        scope = {
            "type": "http",
            "http_version": "1.1",
            "method": method,
            "scheme": "https",
            "path": unquote(path),
            "raw_path": path.encode("latin-1"),
            "query_string": query.encode("latin-1"),
            "root_path": "",
            "headers": raw_headers,
            "client": (client_host, 50000),
            "server": (host, 443),
        }

        async def receive():
            return {"type": "http.request", "body": body, "more_body": False}

        return Request(scope, receive)

    return _make
