"""
Unit tests for route matchers.
"""

import re

import pytest

from blogapi.http.matcher import (
    Matcher,
    RegexMatcher,
    PrefixMatcher,
    RouteDefinitionError,
    into_matcher,
)


class TestRegexMatcher:
    """Tests for RegexMatcher."""

    def test_named_group_extraction(self):
        matcher = RegexMatcher(r"^/api/posts/(?P<id>[0-9]{1,10})/?$")

        assert matcher.match("/api/posts/42") == {"id": "42"}
        assert matcher.match("/api/posts/42/") == {"id": "42"}

    def test_no_match(self):
        matcher = RegexMatcher(r"^/api/posts/(?P<id>[0-9]{1,10})/?$")

        assert matcher.match("/api/posts/hello") is None
        assert matcher.match("/api/posts/12345678901") is None

    def test_match_without_groups(self):
        matcher = RegexMatcher(r"^/api/posts/?$")
        assert matcher.match("/api/posts") == {}

    def test_unmatched_optional_group_is_absent(self):
        """Test that a group that did not participate is left out."""
        matcher = RegexMatcher(r"^/a(?:/(?P<b>[^/]+))?$")

        assert matcher.match("/a/x") == {"b": "x"}
        assert matcher.match("/a") == {}

    def test_anchored_at_start_only(self):
        """Test re.match semantics: start anchored, end open."""
        matcher = RegexMatcher(r"/api")

        assert matcher.match("/api/posts") == {}
        assert matcher.match("/v1/api") is None

    def test_compiled_pattern(self):
        matcher = RegexMatcher(re.compile(r"^/x/(?P<n>\d+)$"))
        assert matcher.match("/x/7") == {"n": "7"}
        assert matcher.pattern == r"^/x/(?P<n>\d+)$"

    def test_invalid_pattern(self):
        with pytest.raises(RouteDefinitionError):
            RegexMatcher(r"^/api/(?P<id>[0-9+$")

    def test_group_names(self):
        matcher = RegexMatcher(r"^/(?P<a>\w+)/(?P<b>\w+)$")
        assert matcher.group_names == ["a", "b"]


class TestPathShorthand:
    """Tests for RegexMatcher.from_path."""

    def test_static_path(self):
        matcher = RegexMatcher.from_path("/users")

        assert matcher.match("/users") == {}
        assert matcher.match("/users/123") is None

    def test_parameter(self):
        matcher = RegexMatcher.from_path("/users/:id")

        assert matcher.match("/users/123") == {"id": "123"}
        assert matcher.match("/users") is None

    def test_wildcard(self):
        matcher = RegexMatcher.from_path("/static/*filepath")
        assert matcher.match("/static/css/style.css") == {"filepath": "css/style.css"}

    def test_static_segments_are_escaped(self):
        matcher = RegexMatcher.from_path("/file.txt")

        assert matcher.match("/file.txt") == {}
        assert matcher.match("/fileXtxt") is None

    def test_root(self):
        assert RegexMatcher.from_path("/").match("/") == {}


class TestPrefixMatcher:
    """Tests for PrefixMatcher."""

    def test_prefix_match(self):
        matcher = PrefixMatcher("/api/posts")

        assert matcher.match("/api/posts") == {}
        assert matcher.match("/api/posts/anything/else") == {}
        assert matcher.match("/api/postsX") == {}

    def test_prefix_no_match(self):
        matcher = PrefixMatcher("/api/posts")

        assert matcher.match("/api/users") is None
        assert matcher.match("/api") is None


class TestIntoMatcher:
    """Tests for coercing route patterns into matchers."""

    def test_string_is_prefix(self):
        matcher = into_matcher("/api/posts")

        assert isinstance(matcher, PrefixMatcher)
        assert matcher.pattern == "/api/posts"

    def test_compiled_regex(self):
        matcher = into_matcher(re.compile(r"^/api/posts/?$"))
        assert isinstance(matcher, RegexMatcher)

    def test_matcher_passthrough(self):
        matcher = RegexMatcher(r"^/x$")
        assert into_matcher(matcher) is matcher

    def test_custom_matcher_passthrough(self):
        class Always(Matcher):
            pattern = "*"

            def match(self, path):
                return {}

        always = Always()
        assert into_matcher(always) is always

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            into_matcher(42)
