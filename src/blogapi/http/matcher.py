"""
=============================================================================
ROUTE MATCHERS
=============================================================================

A matcher decides whether a request path qualifies for a route and pulls
named parameters out of it. There are exactly two kinds:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         MATCHER VARIANTS                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   RegexMatcher  ^/api/posts/(?P<id>[0-9]{1,10})/?$                  │
    │                                                                      │
    │       /api/posts/42      → {"id": "42"}                             │
    │       /api/posts/hello   → None                                     │
    │                                                                      │
    │   PrefixMatcher  "/api/posts"                                       │
    │                                                                      │
    │       /api/posts         → {}                                       │
    │       /api/posts/anything→ {}                                       │
    │       /api/users         → None                                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The HTTP method is checked by the Route that owns the matcher, so a matcher
only ever sees the path (query string already stripped).

Matchers are read-only after construction. Every worker thread shares the
same instances without locking: compiled ``re.Pattern`` objects are safe to
use concurrently.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional, Union
import re


# Named path parameters extracted by a matcher: {"id": "42"}
RouteParams = Dict[str, str]


class RouteDefinitionError(ValueError):
    """
    Raised when a route pattern cannot be compiled.

    This surfaces while routes are being registered at startup, never while
    a request is being served.
    """


class Matcher(ABC):
    """Base class for route matchers."""

    @abstractmethod
    def match(self, path: str) -> Optional[RouteParams]:
        """
        Match a request path.

        Args:
            path: Request path without query string (/api/posts/42)

        Returns:
            Parameter map on success (possibly empty), None otherwise
        """

    @property
    @abstractmethod
    def pattern(self) -> str:
        """Human-readable pattern, used when listing routes."""


class RegexMatcher(Matcher):
    """
    Matches paths against a regular expression with named groups.

    =========================================================================
    MATCH SEMANTICS
    =========================================================================

    The regex is applied with ``re.match``, i.e. anchored at the start of
    the path only. Patterns decide for themselves whether they also anchor
    the end with ``$``:

        ^/api/posts/?$    → exactly /api/posts or /api/posts/
        ^/api/posts       → anything that starts with /api/posts

    Parameters are the named groups that took part in the match. Optional
    groups that did not participate are left out of the map entirely:

        ^/a(?:/(?P<b>[^/]+))?$

        /a/x  → {"b": "x"}
        /a    → {}            (not {"b": None}, not {"b": ""})

    =========================================================================
    """

    def __init__(self, pattern: Union[str, "re.Pattern[str]"]):
        """
        Compile the pattern.

        Args:
            pattern: Regex source or an already-compiled pattern

        Raises:
            RouteDefinitionError: If the pattern does not compile
        """
        if isinstance(pattern, re.Pattern):
            self._regex = pattern
        else:
            try:
                self._regex = re.compile(pattern)
            except re.error as e:
                raise RouteDefinitionError(f"Invalid route pattern {pattern!r}: {e}") from e

    @property
    def pattern(self) -> str:
        return self._regex.pattern

    @property
    def group_names(self) -> list[str]:
        """Names of all capture groups in the pattern."""
        return list(self._regex.groupindex)

    def match(self, path: str) -> Optional[RouteParams]:
        found = self._regex.match(path)
        if found is None:
            return None

        return {
            name: value
            for name, value in found.groupdict().items()
            if value is not None
        }

    @classmethod
    def from_path(cls, path: str) -> "RegexMatcher":
        """
        Build a matcher from the ``:name`` / ``*name`` path shorthand.

        =====================================================================
        PATTERN COMPILATION
        =====================================================================

        Input:  "/users/:id/files/*rest"

            "users"  → /users              (static, escaped)
            ":id"    → /(?P<id>[^/]+)      (one segment)
            "files"  → /files
            "*rest"  → /(?P<rest>.*)       (everything remaining, must be last)

        Output: ^/users/(?P<id>[^/]+)/files/(?P<rest>.*)$

        =====================================================================

        Args:
            path: Route path using the shorthand

        Returns:
            RegexMatcher anchored at both ends
        """
        regex_parts = ["^"]

        for segment in path.split("/"):
            if not segment:
                continue

            regex_parts.append("/")

            if segment.startswith(":"):
                regex_parts.append(f"(?P<{segment[1:]}>[^/]+)")
            elif segment.startswith("*"):
                regex_parts.append(f"(?P<{segment[1:] or 'wildcard'}>.*)")
                break
            else:
                regex_parts.append(re.escape(segment))

        if len(regex_parts) == 1:
            regex_parts.append("/")

        regex_parts.append("$")
        return cls("".join(regex_parts))

    def __repr__(self) -> str:
        return f"RegexMatcher({self.pattern!r})"


class PrefixMatcher(Matcher):
    """
    Matches any path that starts with a literal prefix.

    Never extracts parameters; a successful match is always ``{}``.
    """

    def __init__(self, prefix: str):
        self._prefix = prefix

    @property
    def pattern(self) -> str:
        return self._prefix

    def match(self, path: str) -> Optional[RouteParams]:
        if path.startswith(self._prefix):
            return {}
        return None

    def __repr__(self) -> str:
        return f"PrefixMatcher({self._prefix!r})"


def into_matcher(spec: Union[str, "re.Pattern[str]", Matcher]) -> Matcher:
    """
    Coerce a route pattern into a matcher.

        Matcher instance   → returned unchanged
        compiled re.Pattern→ RegexMatcher
        str                → PrefixMatcher

    Strings are literal prefixes, not regex sources. Wrap regex sources in
    ``RegexMatcher(...)`` or ``re.compile(...)`` explicitly.
    """
    if isinstance(spec, Matcher):
        return spec
    if isinstance(spec, re.Pattern):
        return RegexMatcher(spec)
    if isinstance(spec, str):
        return PrefixMatcher(spec)
    raise TypeError(f"Cannot build a route matcher from {type(spec).__name__}")
