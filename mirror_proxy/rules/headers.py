import logging
from typing import List, MutableMapping

from mirror_proxy.models import HeaderRule
from mirror_proxy.rules.tokenizer import split_unescaped

logger = logging.getLogger("uvicorn.error")


def parse_header_rules(raw: str) -> List[HeaderRule]:
    """
    Parse ``"X-A: 1, -X-B, X-C"`` into ordered set/delete rules.

    ``-Name`` deletes, ``Name: value`` sets (split on the first colon),
    a bare ``Name`` sets an empty value.
    """
    rules: List[HeaderRule] = []
    for entry in split_unescaped(raw):
        if entry.startswith("-"):
            rules.append(HeaderRule(action="delete", key=entry[1:].strip()))
            continue
        key, _, value = entry.partition(":")
        rules.append(
            HeaderRule(
                action="set",
                key=key.strip(),
                value=value.strip().replace("\\\\", "\\"),
            )
        )
    return rules


def apply_header_rules(headers: MutableMapping[str, str], raw: str) -> None:
    """Apply rules in declaration order; a later rule on the same key wins."""
    if not raw or not raw.strip():
        return

    for rule in parse_header_rules(raw):
        if rule.action == "delete":
            headers.pop(rule.key, None)
        else:
            headers[rule.key] = rule.value
        logger.debug(f"[Headers] {rule.action} {rule.key}")
