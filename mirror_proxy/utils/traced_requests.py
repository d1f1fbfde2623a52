import logging
from contextlib import contextmanager
from typing import Dict, Optional

from opentelemetry.trace import Tracer

from mirror_proxy.models import ParsedTarget

logger = logging.getLogger("uvicorn.error")


@contextmanager
def traced_request(
    tracer: Tracer,
    operation: str,
    target: ParsedTarget,
    method: str,
    caller_ip: Optional[str],
    extra_attrs: Optional[Dict] = None,
):
    """Context manager to create a span, set the proxy attributes, and log the hop."""
    with tracer.start_as_current_span(operation) as span:
        span.set_attribute("proxy.target_url", target.url)
        span.set_attribute("proxy.target_host", target.host)
        span.set_attribute("proxy.method", method)
        if caller_ip:
            span.set_attribute("proxy.client_ip", caller_ip)
        if extra_attrs:
            for k, v in extra_attrs.items():
                span.set_attribute(k, v)
        logger.info(f"[Proxy] {method} -> {target.url}")
        yield span
