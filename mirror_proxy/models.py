from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ParsedTarget:
    """Upstream location decoded from an inbound request."""

    protocol: str
    host: str
    pathname: str = "/"
    search: str = ""

    @property
    def origin(self) -> str:
        return f"{self.protocol}://{self.host}"

    @property
    def url(self) -> str:
        return f"{self.origin}{self.pathname}{self.search}"


@dataclass(frozen=True)
class HeaderRule:
    action: str  # "set" or "delete"
    key: str
    value: Optional[str] = None


@dataclass(frozen=True)
class ResolutionAttempt:
    encoded_target: str
    allow_fallback: bool = False
