"""
Tests for target resolution.

Covers each strategy, their priority, the per-strategy disable flags,
host/path splitting, and the documented edge cases (bare markers, the
implicit host heuristic).
"""

import pytest

from mirror_proxy.models import ParsedTarget
from mirror_proxy.target.resolver import looks_like_host, parse_target, split_host_path
from mirror_proxy.vars import ProxyConfig

FALLBACK = "i.pximg.net"


def resolve(raw, config=None, default_protocol="https", fallback_host=FALLBACK, skip_fallback=False):
    return parse_target(raw, config or ProxyConfig(), default_protocol, fallback_host, skip_fallback)


class TestEquivalentForms:
    @pytest.mark.parametrize(
        "raw, protocol",
        [
            ("http://cdn.example.com/img/1.png?size=2", "http"),
            ("https://cdn.example.com/img/1.png?size=2", "https"),
            ("http/cdn.example.com/img/1.png?size=2", "http"),
            ("https/cdn.example.com/img/1.png?size=2", "https"),
            ("-/cdn.example.com/img/1.png?size=2", "http"),
            ("~/cdn.example.com/img/1.png?size=2", "https"),
            ("-cdn.example.com/img/1.png?size=2", "http"),
            ("~cdn.example.com/img/1.png?size=2", "https"),
        ],
    )
    def test_all_markers_agree(self, raw, protocol):
        assert resolve(raw) == ParsedTarget(
            protocol=protocol,
            host="cdn.example.com",
            pathname="/img/1.png",
            search="?size=2",
        )


class TestFullProtocol:
    def test_port_is_kept_in_host(self):
        target = resolve("http://localhost:8080/a")
        assert target.host == "localhost:8080"
        assert target.pathname == "/a"

    def test_missing_path_defaults_to_root(self):
        assert resolve("https://example.com").pathname == "/"

    def test_scheme_is_case_insensitive(self):
        assert resolve("HTTPS://example.com/x").protocol == "https"

    def test_unparseable_url_falls_through(self):
        # bad port: full protocol declines, nothing else fits, fallback host takes it
        target = resolve("http://example.com:notaport/x")
        assert target.host == FALLBACK

    def test_empty_netloc_falls_through(self):
        assert resolve("https:///x", skip_fallback=True) is None


class TestSegmentedProtocol:
    def test_collapsed_double_slash(self):
        target = resolve("https:/cdn.example.com/a.png")
        assert target == ParsedTarget("https", "cdn.example.com", "/a.png", "")

    def test_host_only(self):
        assert resolve("http/example.com") == ParsedTarget("http", "example.com", "/", "")

    def test_bare_marker_gives_empty_host(self):
        assert resolve("https/").host == ""


class TestShorthand:
    def test_bare_tilde_gives_empty_host(self):
        target = resolve("~")
        assert target is not None
        assert target.host == ""
        assert target.protocol == "https"

    def test_bare_dash_slash_gives_empty_host(self):
        target = resolve("-/")
        assert target.host == ""
        assert target.protocol == "http"

    def test_trailing_slash_path(self):
        assert resolve("~example.com/").pathname == "/"

    def test_query_without_path(self):
        target = resolve("~example.com?x=1")
        assert target.host == "example.com"
        assert target.pathname == "/"
        assert target.search == "?x=1"

    def test_lone_question_mark_is_dropped(self):
        assert resolve("~example.com/a?").search == ""


class TestImplicitHost:
    def test_dotted_first_segment_is_host(self):
        assert resolve("cdn.example.com/a.png") == ParsedTarget(
            "https", "cdn.example.com", "/a.png", ""
        )

    def test_uses_default_protocol(self):
        assert resolve("cdn.example.com/a.png", default_protocol="http").protocol == "http"

    def test_ipv6_literal(self):
        target = resolve("[::1]:8080/a")
        assert target.host == "[::1]:8080"
        assert target.pathname == "/a"

    def test_bare_ipv6_with_two_colons(self):
        assert looks_like_host("fe80::1")

    def test_single_colon_is_not_a_host(self):
        assert not looks_like_host("localhost:8080")

    def test_dotted_path_segment_is_misread_as_host(self):
        # Known quirk: "v1.2" looks like a host
        assert resolve("v1.2/download").host == "v1.2"


class TestFallback:
    def test_plain_path_goes_to_fallback_host(self):
        assert resolve("img-original/img/1.png?x=1") == ParsedTarget(
            "https", FALLBACK, "/img-original/img/1.png", "?x=1"
        )

    def test_empty_input_is_fallback_root(self):
        assert resolve("") == ParsedTarget("https", FALLBACK, "/", "")

    def test_skip_fallback(self):
        assert resolve("img/1.png", skip_fallback=True) is None

    def test_no_fallback_host(self):
        assert resolve("img/1.png", fallback_host="") is None


class TestPriorityAndFlags:
    def test_compact_shorthand_wins_without_backtracking(self):
        # "~" matched even though the host is empty; fallback is never consulted
        assert resolve("~").host == ""

    def test_disabled_full_protocol(self):
        config = ProxyConfig(disable_full_protocol=True)
        assert resolve("https://cdn.example.com/a", config, skip_fallback=True) is None

    def test_disabled_segmented_protocol_falls_to_fallback(self):
        config = ProxyConfig(disable_segmented_protocol=True)
        assert resolve("https/cdn.example.com/a", config).host == FALLBACK

    def test_disabled_shorthand_leaves_compact_form(self):
        config = ProxyConfig(disable_shorthand_protocol=True)
        # "~/host" is now read by the compact form: empty host before the slash
        assert resolve("~/cdn.example.com", config).host == ""

    def test_disabled_compact_shorthand(self):
        config = ProxyConfig(disable_compact_shorthand=True)
        target = resolve("~cdn.example.com/a", config)
        # "~cdn.example.com" still has a dot, so implicit host detection takes it
        assert target.host == "~cdn.example.com"

    def test_disabled_implicit_host(self):
        config = ProxyConfig(disable_implicit_host=True)
        assert resolve("cdn.example.com/a", config).host == FALLBACK

    def test_disabled_fallback(self):
        config = ProxyConfig(disable_fallback_proxy=True)
        assert resolve("img/1.png", config) is None


class TestSplitHostPath:
    def test_host_never_contains_slash(self):
        target = split_host_path("https", "a.com/b/c?d=/e")
        assert target.host == "a.com"
        assert target.pathname == "/b/c"
        assert target.search == "?d=/e"

    def test_url_property(self):
        target = split_host_path("https", "a.com/b?c")
        assert target.url == "https://a.com/b?c"
        assert target.origin == "https://a.com"


class TestUserinfoRejected:
    @pytest.mark.parametrize(
        "raw",
        [
            "~a@evil.com/x",
            "https://evil.com@evil.com/x",
            "https/user:pass@evil.com/x",
            "-/a@evil.com",
            "a@evil.com/x",
        ],
    )
    def test_no_target_and_no_fallback(self, raw):
        assert resolve(raw) is None

    def test_split_host_path(self):
        assert split_host_path("https", "a@evil.com/x") is None

    def test_at_sign_in_path_is_fine(self):
        assert resolve("~cdn.example.com/@user/avatar.png").pathname == "/@user/avatar.png"
