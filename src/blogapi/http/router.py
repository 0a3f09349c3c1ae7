"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) to a handler. The first matching route wins.

=============================================================================
ROUTING FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTING FLOW                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Incoming Request                                                   │
    │   GET /api/posts/42                                                  │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │  ROUTER (tried top to bottom)                                │   │
    │   │                                                              │   │
    │   │  GET    ^/api/posts/(?P<id>[0-9]{1,10})/?$  ← MATCH!         │   │
    │   │  GET    ^/api/posts/(?P<fragment>.+?)/?$                     │   │
    │   │  GET    /api/posts  (prefix)                                 │   │
    │   │  POST   ^/api/posts/?$                                       │   │
    │   │                                                              │   │
    │   │  Extracted: params = {"id": "42"}                           │   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │        │                                                             │
    │        ▼                                                             │
    │   get_post(ctx, request, response, {"id": "42"})                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Registration order matters. /api/posts/42 matches both the id route and
the fragment route; it goes to whichever was registered first.

=============================================================================
ROUTER AS A PIPELINE STAGE
=============================================================================

A Router has the same call signature as a middleware stage, so it is added
to the pipeline like any other stage (usually last):

    pipeline.use(LoggingMiddleware())
    pipeline.use(router)

No match → the router finishes the response with 404 itself and the
handler list is never touched.

=============================================================================
"""

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple, Union
import logging
import re

from .matcher import Matcher, RouteParams, into_matcher
from .request import Request
from .response import Response
from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)


# =============================================================================
# TYPE ALIASES
# =============================================================================

# Handler: (ctx, request, response, params) -> (request, response) or None
# Returning None means "same request and response I was given"
Handler = Callable[[Any, Request, Response, RouteParams], Optional[Tuple[Request, Response]]]

MatcherSpec = Union[str, "re.Pattern[str]", Matcher]


@dataclass
class Route:
    """
    A routing rule: method + matcher + handler.

        Route(
            method="GET",
            matcher=RegexMatcher("^/api/posts/(?P<id>[0-9]{1,10})/?$"),
            handler=get_post,
            name="get_post",
        )
    """

    method: str                      # HTTP method, uppercase
    matcher: Matcher                 # Decides on the path, extracts params
    handler: Handler                 # Called on match
    name: Optional[str] = None       # Used in route listings and logs

    def match(self, method: str, path: str) -> Optional[RouteParams]:
        """
        Match a request against this rule.

        Returns:
            Parameter map if both method and path match, None otherwise
        """
        if method.upper() != self.method:
            return None
        return self.matcher.match(path)


@dataclass
class RouteMatch:
    """
    Result of a successful route lookup.

    Example:
        Pattern: ^/api/posts/(?P<id>[0-9]{1,10})/?$
        Path:    /api/posts/42
        Result:  RouteMatch(route=<Route>, params={"id": "42"})
    """
    route: Route
    params: RouteParams


class Router:
    """
    Ordered list of routes with a first-match-wins lookup.

    Routes are registered once at startup and only read afterwards, so the
    same Router is shared by every connection thread.

    Usage:
        router = Router()

        @router.get(RegexMatcher(r"^/api/posts/(?P<id>[0-9]{1,10})/?$"))
        def get_post(ctx, request, response, params):
            post = ctx.posts.get(int(params["id"]))
            return request, response.json(post.to_dict())

        router.add("DELETE", re.compile(r"^/api/posts/(?P<id>[0-9]{1,10})/?$"), delete_post)
    """

    def __init__(self, not_found_body: str = "Not Found"):
        self._routes: List[Route] = []
        self.not_found_body = not_found_body

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add(
        self,
        method: str,
        matcher: MatcherSpec,
        handler: Handler,
        name: Optional[str] = None,
    ) -> Route:
        """
        Register a route.

        Args:
            method: HTTP method (GET, POST, ...)
            matcher: Matcher, compiled regex, or literal prefix string
            handler: Handler to call on match
            name: Optional route name (defaults to the handler's name)

        Returns:
            The registered Route

        Raises:
            RouteDefinitionError: If a regex matcher does not compile
        """
        route = Route(
            method=method.upper(),
            matcher=into_matcher(matcher),
            handler=handler,
            name=name or getattr(handler, "__name__", None),
        )
        self._routes.append(route)
        logger.debug(f"Registered route {route.method} {route.matcher.pattern}")
        return route

    def route(
        self,
        method: str,
        matcher: MatcherSpec,
        name: Optional[str] = None,
    ) -> Callable[[Handler], Handler]:
        """
        Decorator for registering routes.

        Usage:
            @router.route("PUT", re.compile(r"^/api/posts/?$"))
            def update_post(ctx, request, response, params):
                ...
        """
        def decorator(handler: Handler) -> Handler:
            self.add(method, matcher, handler, name)
            return handler  # Unchanged, so decorators stack
        return decorator

    def get(self, matcher: MatcherSpec, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        """Register a GET route."""
        return self.route("GET", matcher, name)

    def post(self, matcher: MatcherSpec, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        """Register a POST route."""
        return self.route("POST", matcher, name)

    def put(self, matcher: MatcherSpec, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        """Register a PUT route."""
        return self.route("PUT", matcher, name)

    def delete(self, matcher: MatcherSpec, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        """Register a DELETE route."""
        return self.route("DELETE", matcher, name)

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    def resolve(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        Find the first route matching method and path.

        Args:
            method: HTTP method
            path: Decoded request path, without query string

        Returns:
            RouteMatch if found, None otherwise
        """
        for route in self._routes:
            params = route.match(method, path)
            if params is not None:
                return RouteMatch(route=route, params=params)
        return None

    def __call__(
        self,
        ctx: Any,
        request: Request,
        response: Response,
    ) -> Tuple[Request, Response]:
        """
        Run as a pipeline stage: dispatch to the matched handler or send 404.
        """
        found = self.resolve(request.method, request.path)

        if found is None:
            logger.debug(f"No route for {request.method} {request.path}")
            return request, response.text(self.not_found_body, status=HTTPStatus.NOT_FOUND)

        result = found.route.handler(ctx, request, response, found.params)
        if result is None:
            return request, response
        return result

    # =========================================================================
    # UTILITY METHODS
    # =========================================================================

    def routes(self) -> List[Route]:
        """All registered routes in match order."""
        return list(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    def print_routes(self) -> None:
        """
        Print all registered routes (useful for debugging).

        Example output:
            Registered Routes:
            ------------------------------------------------------------
              GET      ^/api/posts/(?P<id>[0-9]{1,10})/?$
              GET      /api/posts
              POST     ^/api/posts/?$
            ------------------------------------------------------------
        """
        print("\nRegistered Routes:")
        print("-" * 60)
        for route in self._routes:
            print(f"  {route.method:8} {route.matcher.pattern}")
        print("-" * 60)
