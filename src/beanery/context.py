"""Lifetime contexts that scope beans to a unit of work.

A :class:`LifetimeContext` carries values for one unit of work (typically one
inbound request) and a list of callbacks to run when that unit of work ends.
Eager beans live in the background context, which never ends.
"""

import threading
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Iterator, Mapping, Optional

import structlog

__all__ = ["BeanKey", "LifetimeContext", "background_context"]

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BeanKey:
    """Key under which a request bean is published into a context.

    Using a dedicated key type keeps bean entries from colliding with plain
    string keys stored in the same context.
    """

    bean_id: str


class LifetimeContext(Mapping[Hashable, Any]):
    """Values and end-of-life callbacks for one unit of work.

    Example:
        >>> with LifetimeContext({"user": "arthur"}) as context:
        ...     context.add_done_callback(lambda: print("done"))
        done
    """

    def __init__(self, values: Optional[Mapping[Hashable, Any]] = None):
        self._values: dict[Hashable, Any] = dict(values or {})
        self._callbacks: list[Callable[[], None]] = []
        self._done = False
        self._lock = threading.Lock()

    def __getitem__(self, key: Hashable) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __setitem__(self, key: Hashable, value: Any) -> None:
        self._values[key] = value

    @property
    def done(self) -> bool:
        return self._done

    def add_done_callback(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` when the context finishes.

        Raises:
            RuntimeError: If the context has already finished.
        """
        with self._lock:
            if self._done:
                raise RuntimeError("lifetime context has already finished")
            self._callbacks.append(callback)

    def finish(self) -> None:
        """Mark the context as done and run its callbacks once, in order.

        Every callback runs even if an earlier one fails; the first failure is
        re-raised afterwards.
        """
        with self._lock:
            if self._done:
                return
            self._done = True
            callbacks, self._callbacks = self._callbacks, []

        first_error: Optional[BaseException] = None
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                if first_error is None:
                    first_error = e
                else:
                    logger.error("context_callback_failed", exc_info=e)
        if first_error is not None:
            raise first_error

    def __enter__(self) -> "LifetimeContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.finish()


class _BackgroundContext(LifetimeContext):
    """The context of eager beans: it never finishes."""

    def add_done_callback(self, callback: Callable[[], None]) -> None:
        pass

    def finish(self) -> None:
        pass

    def __setitem__(self, key: Hashable, value: Any) -> None:
        raise TypeError("the background context is read-only")

    def __repr__(self) -> str:
        return "background_context()"


_background = _BackgroundContext()


def background_context() -> LifetimeContext:
    return _background
