"""
Allow/block pattern lists shared by origin, IP, host and method filtering.

A pattern is a literal (case-insensitive equality) or, when it holds an
unescaped ``*`` (any run), ``+`` (one or more) or ``?`` (exactly one), an
anchored case-insensitive regex. ``\\*``, ``\\+``, ``\\?`` and ``\\\\`` match
the character itself.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Iterable, Optional, Tuple

from mirror_proxy.rules.tokenizer import split_unescaped

_ESCAPES = (
    ("\\\\", "\ue010", "\\"),
    ("\\*", "\ue011", "*"),
    ("\\+", "\ue012", "+"),
    ("\\?", "\ue013", "?"),
)

_WILDCARDS = {
    "*": ".*",
    "+": ".+",
    "?": ".",
}


@dataclass(frozen=True)
class Pattern:
    source: str
    literal: Optional[str] = None
    regex: Optional[re.Pattern] = None

    def matches(self, value: str) -> bool:
        if self.regex is not None:
            return self.regex.fullmatch(value) is not None
        return value.lower() == self.literal


def _protect(source: str) -> str:
    for sequence, placeholder, _ in _ESCAPES:
        source = source.replace(sequence, placeholder)
    return source


def _restore(text: str, render: Callable[[str], str]) -> str:
    for _, placeholder, char in _ESCAPES:
        text = text.replace(placeholder, render(char))
    return text


def compile_pattern(source: str) -> Pattern:
    protected = _protect(source)

    if not any(char in protected for char in _WILDCARDS):
        literal = _restore(protected, lambda char: char)
        return Pattern(source=source, literal=literal.lower())

    # re.escape leaves the private-use placeholders alone
    expression = re.escape(protected)
    for char, fragment in _WILDCARDS.items():
        expression = expression.replace(re.escape(char), fragment)
    expression = _restore(expression, re.escape)

    return Pattern(
        source=source,
        regex=re.compile(expression, re.IGNORECASE | re.DOTALL),
    )


@lru_cache(maxsize=256)
def parse_pattern_list(raw: str) -> Tuple[Pattern, ...]:
    return tuple(compile_pattern(entry) for entry in split_unescaped(raw or ""))


def matches_any(value: str, patterns: Iterable[Pattern]) -> bool:
    return any(pattern.matches(value) for pattern in patterns)


def is_allowed(value: Optional[str], allow_list: str, block_list: str) -> bool:
    """
    Evaluate ``value`` against raw allow and block pattern lists.

    An empty list places no restriction. When a value matches both lists
    the block list wins.
    """
    allow = parse_pattern_list(allow_list or "")
    block = parse_pattern_list(block_list or "")
    if not allow and not block:
        return True

    value = value or ""
    if allow and not matches_any(value, allow):
        return False
    return not matches_any(value, block)
