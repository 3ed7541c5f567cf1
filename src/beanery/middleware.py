"""Binding of request-scoped beans to units of work.

For every request-scoped bean, a unit of work (typically one inbound web
request) gets its own instance, published into the unit's
:class:`~beanery.context.LifetimeContext` under ``BeanKey(bean_id)``. Instances
that are :class:`~beanery.capabilities.Closeable` are closed exactly once when
the context finishes; errors from ``close`` propagate to whoever finishes it.

Framework-neutral usage:

    with request_scope(container) as context:
        session = context[BeanKey("session")]

WSGI usage:

    app = RequestScopeMiddleware(app, container)

    def view(environ, start_response):
        session = request_bean(environ, "session")
"""

from contextlib import contextmanager
from typing import Any, Callable, Iterable, Iterator, Optional

import structlog

from beanery.capabilities import Closeable
from beanery.container import Container
from beanery.context import BeanKey, LifetimeContext

__all__ = [
    "bind_request_beans",
    "request_scope",
    "RequestScopeMiddleware",
    "request_bean",
    "CONTEXT_ENVIRON_KEY",
]

logger = structlog.get_logger(__name__)

CONTEXT_ENVIRON_KEY = "beanery.context"

WSGIApp = Callable[[dict, Callable], Iterable[bytes]]


def bind_request_beans(container: Container, context: LifetimeContext) -> None:
    """Create every request bean under ``context`` and publish it there.

    Raises:
        ContainerError: If a request bean can't be created.
    """
    for bean_id in container.request_bean_ids():
        instance = container.resolve_in_context(bean_id, context)
        context[BeanKey(bean_id)] = instance
        if isinstance(instance, Closeable):
            context.add_done_callback(instance.close)
        logger.debug("request_bean_bound", bean_id=bean_id)


@contextmanager
def request_scope(
    container: Container, context: Optional[LifetimeContext] = None
) -> Iterator[LifetimeContext]:
    """Run a block as one unit of work with its own request beans.

    Args:
        container: An initialized container.
        context: The unit of work's context. When omitted a new context is
            created and finished as the block exits; a caller-supplied context
            stays open and remains the caller's to finish.
    """
    owned = context is None
    context = LifetimeContext() if owned else context
    try:
        bind_request_beans(container, context)
        yield context
    finally:
        if owned:
            context.finish()


class RequestScopeMiddleware:
    """WSGI middleware giving every request its own request-scoped beans.

    The request's context is stored in ``environ["beanery.context"]`` and
    finished when the server closes the response iterable.
    """

    def __init__(self, app: WSGIApp, container: Container):
        self._app = app
        self._container = container

    def __call__(self, environ: dict, start_response: Callable) -> Iterable[bytes]:
        context = LifetimeContext()
        try:
            bind_request_beans(self._container, context)
            environ[CONTEXT_ENVIRON_KEY] = context
            result = self._app(environ, start_response)
        except Exception:
            context.finish()
            raise
        return _ClosingIterable(result, context.finish)


def request_bean(environ: dict, bean_id: str) -> Any:
    """Look up a request bean bound by :class:`RequestScopeMiddleware`.

    Raises:
        KeyError: If the middleware is not installed or no such bean is bound.
    """
    return environ[CONTEXT_ENVIRON_KEY][BeanKey(bean_id)]


class _ClosingIterable:
    def __init__(self, iterable: Iterable[bytes], on_close: Callable[[], None]):
        self._iterable = iterable
        self._on_close = on_close

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._iterable)

    def close(self) -> None:
        try:
            close = getattr(self._iterable, "close", None)
            if close is not None:
                close()
        finally:
            self._on_close()
