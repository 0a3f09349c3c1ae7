"""
=============================================================================
BASE MIDDLEWARE INTERFACE
=============================================================================

Defines the middleware protocol and the linear pipeline that runs it.

=============================================================================
LINEAR PIPELINE WITH SHORT-CIRCUIT
=============================================================================

Stages run one after another, each receiving the (request, response) pair
the previous stage returned. There is no "next" callback and no unwinding
phase: a stage is done when it returns.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      PIPELINE - REQUEST FLOW                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   (ctx, request, response)                                           │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌──────────┐    ┌──────────┐    ┌──────────┐                       │
    │   │ Logging  │───►│  Auth    │───►│  Router  │                       │
    │   │ (observe)│    │          │    │          │                       │
    │   └──────────┘    └────┬─────┘    └──────────┘                       │
    │                        │                                             │
    │                        │ response.is_done?                           │
    │                        ▼                                             │
    │                   stop here; later stages never run                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A stage can:
    - observe and pass the pair through unchanged (return None or the pair)
    - substitute the request, e.g. after reading the body
    - finish the response (json()/text()), which stops the pipeline

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterator, List, Optional, Tuple, Union
import logging

from ..http.request import Request
from ..http.response import Response


logger = logging.getLogger(__name__)


# =============================================================================
# TYPE ALIASES
# =============================================================================

# What a stage hands on. None means "the pair I was given, unchanged".
StageResult = Optional[Tuple[Request, Response]]

# Any callable with the stage signature can go in a pipeline.
# A Router is one; so is every Middleware subclass.
StageFunc = Callable[[Any, Request, Response], StageResult]


class Middleware(ABC):
    """
    Abstract base class for middleware.

    =========================================================================
    THE MIDDLEWARE CONTRACT
    =========================================================================

        def __call__(self, ctx, request, response) -> (request, response)

    ctx is the per-request application context built by the server's
    context factory. The returned request may be a different object than
    the one passed in (for instance a request that has buffered its body).

    =========================================================================
    MIDDLEWARE ANATOMY
    =========================================================================

        class RequireJSON(Middleware):
            def __call__(self, ctx, request, response):
                if request.method in ("POST", "PUT") and \\
                        request.content_type != "application/json":
                    # SHORT-CIRCUIT: nothing after this stage runs
                    return request, response.json(
                        {"error": "Expected JSON"}, status=400
                    )
                return request, response

    =========================================================================
    """

    @abstractmethod
    def __call__(self, ctx: Any, request: Request, response: Response) -> StageResult:
        """
        Process the request.

        Args:
            ctx: Per-request application context
            request: The request so far
            response: The response so far

        Returns:
            The (request, response) pair for the next stage, or None to
            pass the inputs on unchanged
        """

    @property
    def name(self) -> str:
        """Get the middleware name for logging."""
        return self.__class__.__name__


Stage = Union[Middleware, StageFunc]


class MiddlewarePipeline:
    """
    Ordered list of stages run once per request.

    =========================================================================
    USAGE
    =========================================================================

        pipeline = MiddlewarePipeline()
        pipeline.add(LoggingMiddleware())
        pipeline.add(router)

        request, response = pipeline.run(ctx, request, response)

    Stages are registered at startup and the pipeline is shared by every
    connection thread, so a pipeline must not be modified while serving.

    =========================================================================
    """

    def __init__(self):
        """Initialize an empty middleware pipeline."""
        self._stages: List[Stage] = []

    def add(self, stage: Stage) -> "MiddlewarePipeline":
        """
        Append a stage. Stages run in the order added.

        Returns:
            Self for method chaining
        """
        self._stages.append(stage)
        logger.debug(f"Added middleware: {stage_name(stage)}")
        return self  # Enable chaining: pipeline.add(A).add(B).add(C)

    def use(self, *stages: Stage) -> "MiddlewarePipeline":
        """
        Add multiple stages at once.

        Example:
            pipeline.use(LoggingMiddleware(), router)
        """
        for stage in stages:
            self.add(stage)
        return self

    def run(self, ctx: Any, request: Request, response: Response) -> Tuple[Request, Response]:
        """
        Run the stages in order.

        =====================================================================
        TERMINATION
        =====================================================================

        Given [A, B, C] where B finishes the response:

            A(ctx, req, resp)   → (req, resp)         resp FRESH, continue
            B(ctx, req, resp)   → (req, resp.json())  resp DONE, stop
            C                   → never called

        If the response is already DONE before the first stage, no stage
        runs at all.

        =====================================================================

        Exceptions raised by a stage propagate to the caller.

        Returns:
            The final (request, response) pair
        """
        for stage in self._stages:
            if response.is_done:
                break

            result = stage(ctx, request, response)
            if result is not None:
                request, response = result

        return request, response

    def __len__(self) -> int:
        """Get the number of stages in the pipeline."""
        return len(self._stages)

    def __iter__(self) -> Iterator[Stage]:
        """Iterate over stages."""
        return iter(self._stages)


def stage_name(stage: Stage) -> str:
    """Name used for a stage in log messages."""
    name = getattr(stage, "name", None)
    if isinstance(name, str):
        return name
    return getattr(stage, "__name__", type(stage).__name__)


# =============================================================================
# FUNCTION MIDDLEWARE
# =============================================================================
#
# Sometimes you want a quick one-off middleware without creating a class.
# FunctionMiddleware wraps a simple function as middleware.
#
# =============================================================================

class FunctionMiddleware(Middleware):
    """
    Wraps a simple function as middleware.

    Usage:
        @function_middleware
        def tag_request(ctx, request, response):
            response.set_header("X-Request-ID", ctx.request_id)
            return request, response

        pipeline.add(tag_request)

    Or without decorator:
        pipeline.add(FunctionMiddleware(my_func, name="my_func"))
    """

    def __init__(self, func: StageFunc, name: Optional[str] = None):
        """
        Create middleware from a function.

        Args:
            func: Function with signature (ctx, request, response) → pair or None
            name: Optional name for logging (defaults to function name)
        """
        self._func = func
        self._name = name or func.__name__

    def __call__(self, ctx: Any, request: Request, response: Response) -> StageResult:
        """Delegate to the wrapped function."""
        return self._func(ctx, request, response)

    @property
    def name(self) -> str:
        """Return the middleware name."""
        return self._name


def function_middleware(func: StageFunc) -> FunctionMiddleware:
    """
    Decorator to create middleware from a function.

    Usage:
        @function_middleware
        def reject_large_posts(ctx, request, response):
            if request.content_length > 64 * 1024:
                return request, response.text("Too large", status=413)

        pipeline.add(reject_large_posts)
    """
    return FunctionMiddleware(func)
