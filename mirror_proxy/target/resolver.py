"""
Decoding of an encoded target string into a ``ParsedTarget``.

Strategies run in a fixed order and the first one whose lexical shape fits
the input decides the result:

1. full protocol       ``https://host/path?q``
2. segmented protocol  ``https/host/path?q`` (also ``https:/host``)
3. shorthand protocol  ``~/host/path?q`` (https), ``-/host/path?q`` (http)
4. compact shorthand   ``~host/path?q``, ``-host/path?q``
5. implicit host       ``host.tld/path?q`` under the default protocol
6. fallback proxy      the whole input as a path on the fallback host

Only the full protocol form falls through after recognising its shape
(when the URL does not parse). A disabled strategy is skipped.
"""

import logging
import re
from typing import Callable, List, Optional, Tuple
from urllib.parse import urlsplit

from mirror_proxy.models import ParsedTarget
from mirror_proxy.vars import ProxyConfig

logger = logging.getLogger("uvicorn.error")

_FULL_PROTOCOL = re.compile(r"^https?://", re.IGNORECASE)
_SEGMENTED_PROTOCOL = re.compile(r"^(https?):?/(?!/)(.*)$", re.IGNORECASE | re.DOTALL)
_SHORTHAND_PROTOCOL = re.compile(r"^([~-])/(.*)$", re.DOTALL)
_COMPACT_SHORTHAND = re.compile(r"^([~-])(.*)$", re.DOTALL)

_MARKER_PROTOCOLS = {"~": "https", "-": "http"}

# (matched, target); matched=True with target=None means "shape fit, no result"
StrategyResult = Tuple[bool, Optional[ParsedTarget]]
Strategy = Callable[[str, str, str, bool], StrategyResult]

_NO_MATCH: StrategyResult = (False, None)


def split_host_path(protocol: str, rest: str) -> Optional[ParsedTarget]:
    """
    Split ``host[/path][?query]`` into a ParsedTarget.

    Returns None when the host carries userinfo (``user@host``).
    """
    search = ""
    query_at = rest.find("?")
    if query_at >= 0:
        search = rest[query_at:]
        rest = rest[:query_at]
    if search == "?":
        search = ""

    host, slash, path = rest.partition("/")
    if "@" in host:
        logger.debug(f"[Resolver] Userinfo in host {host!r} rejected")
        return None
    pathname = "/" + path if slash else "/"
    return ParsedTarget(protocol=protocol, host=host, pathname=pathname, search=search)


def looks_like_host(segment: str) -> bool:
    # Known to misfire on dotted path segments such as "v1.2"
    return "." in segment or segment.startswith("[") or segment.count(":") >= 2


def _full_protocol(raw, default_protocol, fallback_host, skip_fallback):
    if not _FULL_PROTOCOL.match(raw):
        return _NO_MATCH
    try:
        parts = urlsplit(raw)
        parts.port  # raises ValueError on a malformed port
    except ValueError as e:
        logger.debug(f"[Resolver] Unparseable absolute URL {raw!r}: {e}")
        return _NO_MATCH
    if not parts.netloc:
        return _NO_MATCH
    if "@" in parts.netloc:
        logger.debug(f"[Resolver] Userinfo in {raw!r} rejected")
        return True, None
    return True, ParsedTarget(
        protocol=parts.scheme.lower(),
        host=parts.netloc,
        pathname=parts.path or "/",
        search=f"?{parts.query}" if parts.query else "",
    )


def _segmented_protocol(raw, default_protocol, fallback_host, skip_fallback):
    match = _SEGMENTED_PROTOCOL.match(raw)
    if not match:
        return _NO_MATCH
    return True, split_host_path(match.group(1).lower(), match.group(2))


def _shorthand_protocol(raw, default_protocol, fallback_host, skip_fallback):
    match = _SHORTHAND_PROTOCOL.match(raw)
    if not match:
        return _NO_MATCH
    return True, split_host_path(_MARKER_PROTOCOLS[match.group(1)], match.group(2))


def _compact_shorthand(raw, default_protocol, fallback_host, skip_fallback):
    match = _COMPACT_SHORTHAND.match(raw)
    if not match:
        return _NO_MATCH
    return True, split_host_path(_MARKER_PROTOCOLS[match.group(1)], match.group(2))


def _implicit_host(raw, default_protocol, fallback_host, skip_fallback):
    first_segment = raw.split("/", 1)[0].split("?", 1)[0]
    if not looks_like_host(first_segment):
        return _NO_MATCH
    return True, split_host_path(default_protocol, raw)


def _fallback_proxy(raw, default_protocol, fallback_host, skip_fallback):
    if skip_fallback or not fallback_host:
        return _NO_MATCH
    target = split_host_path(default_protocol, f"{fallback_host}/{raw.lstrip('/')}")
    return True, target


def _strategies(config: ProxyConfig) -> List[Strategy]:
    candidates = [
        (config.disable_full_protocol, _full_protocol),
        (config.disable_segmented_protocol, _segmented_protocol),
        (config.disable_shorthand_protocol, _shorthand_protocol),
        (config.disable_compact_shorthand, _compact_shorthand),
        (config.disable_implicit_host, _implicit_host),
        (config.disable_fallback_proxy, _fallback_proxy),
    ]
    return [strategy for disabled, strategy in candidates if not disabled]


def parse_target(
    raw: str,
    config: ProxyConfig,
    default_protocol: str,
    fallback_host: str,
    skip_fallback: bool,
) -> Optional[ParsedTarget]:
    """
    Decode ``raw`` into a ParsedTarget, or None when no strategy applies.

    A None result means "this source gave no usable target" and the caller
    moves on. A bare marker yields an empty host, which the forwarder
    rejects.
    """
    raw = raw or ""
    for strategy in _strategies(config):
        matched, target = strategy(raw, default_protocol, fallback_host, skip_fallback)
        if matched:
            logger.debug(f"[Resolver] {strategy.__name__.lstrip('_')}: {raw!r} -> {target}")
            return target
    return None
