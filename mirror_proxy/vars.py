import os
from dataclasses import dataclass
from typing import Mapping, Optional

SERVICE_NAME = os.getenv("SERVICE_NAME", "mirror-proxy")

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")

METRICS_PATH = os.getenv("METRICS_PATH", "/metrics")

_TRUE_VALUES = {"true", "1", "yes"}


def _flag(env: Mapping[str, str], name: str) -> bool:
    return env.get(name, "false").strip().lower() in _TRUE_VALUES


def _timeout(raw: str) -> Optional[float]:
    raw = (raw or "").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"PROXY_TIMEOUT must be a number of seconds, got {raw!r}")
    return value if value > 0 else None


@dataclass(frozen=True)
class ProxyConfig:
    """Process-lifetime proxy settings. Built once, never mutated."""

    allowed_origins: str = ""
    blocked_origins: str = ""
    allowed_ips: str = ""
    blocked_ips: str = ""
    allowed_hosts: str = ""
    blocked_hosts: str = ""
    allowed_methods: str = ""
    blocked_methods: str = ""

    request_headers: str = ""
    response_headers: str = ""

    default_protocol: str = "https"
    fallback_host: str = ""
    root_page: str = ""
    error_page: str = ""

    proxy_deploy_domain: str = ""
    subdomain_proxy_root: str = ""
    subdomain_separator: str = ""

    param_name: str = "url"
    disable_param_merge: bool = False
    disable_referer_spoof: bool = False
    disable_redirect_follow: bool = False

    # TargetResolver strategies
    disable_full_protocol: bool = False
    disable_segmented_protocol: bool = False
    disable_shorthand_protocol: bool = False
    disable_compact_shorthand: bool = False
    disable_implicit_host: bool = False
    disable_fallback_proxy: bool = False

    # FallbackChain states
    disable_subdomain_proxy: bool = False
    disable_path_proxy: bool = False
    disable_whole_path_proxy: bool = False
    disable_param_proxy: bool = False
    disable_root_proxy: bool = False

    disable_cors: bool = False
    client_ip_header: str = "x-forwarded-for"
    proxy_timeout: Optional[float] = None


def load_config(env: Optional[Mapping[str, str]] = None) -> ProxyConfig:
    """Read a ProxyConfig from the environment (or any str->str mapping)."""
    if env is None:
        env = os.environ

    default_protocol = env.get("DEFAULT_PROTOCOL", "https").strip().lower()
    if default_protocol not in ("http", "https"):
        default_protocol = "https"

    return ProxyConfig(
        allowed_origins=env.get("ALLOWED_ORIGINS", ""),
        blocked_origins=env.get("BLOCKED_ORIGINS", ""),
        allowed_ips=env.get("ALLOWED_IPS", ""),
        blocked_ips=env.get("BLOCKED_IPS", ""),
        allowed_hosts=env.get("ALLOWED_HOSTS", ""),
        blocked_hosts=env.get("BLOCKED_HOSTS", ""),
        allowed_methods=env.get("ALLOWED_METHODS", ""),
        blocked_methods=env.get("BLOCKED_METHODS", ""),
        request_headers=env.get("REQUEST_HEADERS", ""),
        response_headers=env.get("RESPONSE_HEADERS", ""),
        default_protocol=default_protocol,
        fallback_host=env.get("FALLBACK_HOST", "").strip(),
        root_page=env.get("ROOT_PAGE", "").strip(),
        error_page=env.get("ERROR_PAGE", "").strip(),
        proxy_deploy_domain=env.get("PROXY_DEPLOY_DOMAIN", "").strip().lower(),
        subdomain_proxy_root=env.get("SUBDOMAIN_PROXY_ROOT", "").strip().lower(),
        subdomain_separator=env.get("SUBDOMAIN_SEPARATOR", ""),
        param_name=env.get("PARAM_NAME", "url").strip(),
        disable_param_merge=_flag(env, "DISABLE_PARAM_MERGE"),
        disable_referer_spoof=_flag(env, "DISABLE_REFERER_SPOOF"),
        disable_redirect_follow=_flag(env, "DISABLE_REDIRECT_FOLLOW"),
        disable_full_protocol=_flag(env, "DISABLE_FULL_PROTOCOL"),
        disable_segmented_protocol=_flag(env, "DISABLE_SEGMENTED_PROTOCOL"),
        disable_shorthand_protocol=_flag(env, "DISABLE_SHORTHAND_PROTOCOL"),
        disable_compact_shorthand=_flag(env, "DISABLE_COMPACT_SHORTHAND"),
        disable_implicit_host=_flag(env, "DISABLE_IMPLICIT_HOST"),
        disable_fallback_proxy=_flag(env, "DISABLE_FALLBACK_PROXY"),
        disable_subdomain_proxy=_flag(env, "DISABLE_SUBDOMAIN_PROXY"),
        disable_path_proxy=_flag(env, "DISABLE_PATH_PROXY"),
        disable_whole_path_proxy=_flag(env, "DISABLE_WHOLE_PATH_PROXY"),
        disable_param_proxy=_flag(env, "DISABLE_PARAM_PROXY"),
        disable_root_proxy=_flag(env, "DISABLE_ROOT_PROXY"),
        disable_cors=_flag(env, "DISABLE_CORS"),
        client_ip_header=env.get("CLIENT_IP_HEADER", "x-forwarded-for").strip().lower(),
        proxy_timeout=_timeout(env.get("PROXY_TIMEOUT", "")),
    )
