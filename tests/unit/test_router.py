"""
Unit tests for the URL router.
"""

import re

import pytest

from blogapi.http.matcher import PrefixMatcher, RegexMatcher, RouteDefinitionError
from blogapi.http.router import Router


def make_handler(label, calls):
    """Handler that records its label and params, then answers with JSON."""
    def handler(ctx, request, response, params):
        calls.append((label, params))
        return request, response.json({"handler": label, "params": params})
    handler.__name__ = label
    return handler


class TestRouteResolution:
    """Tests for Router.resolve."""

    def test_static_route(self):
        router = Router()
        router.add("GET", RegexMatcher(r"^/api/posts/?$"), make_handler("list", []))

        found = router.resolve("GET", "/api/posts")

        assert found is not None
        assert found.route.name == "list"
        assert found.params == {}

    def test_params_extracted(self):
        router = Router()
        router.add("GET", re.compile(r"^/api/posts/(?P<id>[0-9]+)/?$"), make_handler("get", []))

        found = router.resolve("GET", "/api/posts/42")

        assert found.params == {"id": "42"}

    def test_method_must_match(self):
        router = Router()
        router.add("POST", re.compile(r"^/api/posts/?$"), make_handler("create", []))

        assert router.resolve("GET", "/api/posts") is None
        assert router.resolve("post", "/api/posts") is not None

    def test_first_match_wins(self):
        """Test that /api/posts/42 goes to the id route registered first."""
        router = Router()
        router.add("GET", re.compile(r"^/api/posts/(?P<id>[0-9]{1,10})/?$"), make_handler("by_id", []))
        router.add("GET", re.compile(r"^/api/posts/(?P<fragment>.+?)/?$"), make_handler("by_fragment", []))

        assert router.resolve("GET", "/api/posts/42").route.name == "by_id"
        assert router.resolve("GET", "/api/posts/hello").route.name == "by_fragment"

    def test_registration_order_decides_ambiguity(self):
        router = Router()
        router.add("GET", re.compile(r"^/api/posts/(?P<fragment>.+?)/?$"), make_handler("by_fragment", []))
        router.add("GET", re.compile(r"^/api/posts/(?P<id>[0-9]{1,10})/?$"), make_handler("by_id", []))

        found = router.resolve("GET", "/api/posts/42")

        assert found.route.name == "by_fragment"
        assert found.params == {"fragment": "42"}

    def test_string_is_prefix(self):
        router = Router()
        router.add("GET", "/api/posts", make_handler("list", []))

        assert router.resolve("GET", "/api/posts/anything").route.name == "list"
        assert router.resolve("GET", "/api/other") is None

    def test_invalid_pattern_fails_at_registration(self):
        router = Router()

        with pytest.raises(RouteDefinitionError):
            router.add("GET", RegexMatcher(r"^/(?P<id>[0-9]+$"), make_handler("bad", []))

        assert len(router) == 0


class TestRouteDecorators:
    """Tests for decorator-based route registration."""

    def test_decorators_register_methods(self):
        router = Router()

        @router.get(PrefixMatcher("/a"))
        def a(ctx, request, response, params):
            pass

        @router.post(PrefixMatcher("/b"))
        def b(ctx, request, response, params):
            pass

        @router.put(PrefixMatcher("/c"))
        def c(ctx, request, response, params):
            pass

        @router.delete(PrefixMatcher("/d"), name="remove")
        def d(ctx, request, response, params):
            pass

        routes = router.routes()

        assert [r.method for r in routes] == ["GET", "POST", "PUT", "DELETE"]
        assert [r.name for r in routes] == ["a", "b", "c", "remove"]

    def test_decorator_returns_handler(self):
        router = Router()

        def handler(ctx, request, response, params):
            pass

        assert router.get("/x")(handler) is handler


class TestRouterAsStage:
    """Tests for calling the router as a pipeline stage."""

    def test_dispatch_to_handler(self, make_request, transport, response, parse_response):
        calls = []
        router = Router()
        router.add("GET", re.compile(r"^/api/posts/(?P<id>[0-9]+)/?$"), make_handler("get", calls))

        request = make_request("GET", "/api/posts/7")
        result = router(None, request, response)

        assert result == (request, response)
        assert calls == [("get", {"id": "7"})]

        status, _, body = parse_response(transport.raw)
        assert status == 200

    def test_no_match_sends_404(self, make_request, transport, response, parse_response):
        calls = []
        router = Router()
        router.add("GET", re.compile(r"^/api/posts/?$"), make_handler("list", calls))

        _, resp = router(None, make_request("GET", "/nope"), response)

        status, _, body = parse_response(transport.raw)
        assert status == 404
        assert body == b"Not Found"
        assert resp.is_done
        assert calls == []

    def test_wrong_method_sends_404(self, make_request, transport, response, parse_response):
        calls = []
        router = Router()
        router.add("POST", re.compile(r"^/api/posts/?$"), make_handler("create", calls))

        router(None, make_request("GET", "/api/posts"), response)

        status, _, _ = parse_response(transport.raw)
        assert status == 404
        assert calls == []

    def test_handler_returning_none(self, make_request, response):
        router = Router()
        router.add("GET", "/", lambda ctx, request, response, params: None)

        request = make_request("GET", "/")
        assert router(None, request, response) == (request, response)
        assert not response.is_done

    def test_context_is_passed_through(self, make_request, response):
        seen = []
        router = Router()
        router.add("GET", "/", lambda ctx, request, response, params: seen.append(ctx))

        ctx = object()
        router(ctx, make_request("GET", "/"), response)

        assert seen == [ctx]


class TestRouteListing:
    """Tests for route listings."""

    def test_print_routes(self, capsys):
        router = Router()
        router.add("GET", re.compile(r"^/api/posts/?$"), make_handler("list", []))
        router.add("DELETE", "/api/posts", make_handler("delete", []))

        router.print_routes()
        out = capsys.readouterr().out

        assert "GET      ^/api/posts/?$" in out
        assert "DELETE   /api/posts" in out
