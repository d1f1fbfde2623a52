from .headers import apply_header_rules, parse_header_rules
from .patterns import compile_pattern, is_allowed, matches_any, parse_pattern_list
from .tokenizer import split_unescaped

__all__ = [
    "apply_header_rules",
    "compile_pattern",
    "is_allowed",
    "matches_any",
    "parse_header_rules",
    "parse_pattern_list",
    "split_unescaped",
]
