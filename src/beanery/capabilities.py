"""Optional capabilities a bean class can opt into by subclassing.

The container checks membership with ``isinstance``; a bean that merely has a
method of the same name without subclassing is not treated as capable.
"""

from abc import ABC, abstractmethod

from beanery.context import LifetimeContext

__all__ = ["InitializingBean", "Closeable", "ContextAwareBean"]


class InitializingBean(ABC):
    @abstractmethod
    def post_construct(self) -> None:
        """Finish initialization once all dependencies are injected.

        Raising aborts the resolution (or the container initialization) that
        produced this bean.
        """


class Closeable(ABC):
    @abstractmethod
    def close(self) -> None:
        """Release resources when the bean's lifetime ends.

        Singletons are closed by :meth:`Container.close`, request beans when
        the context they were created for finishes.
        """


class ContextAwareBean(ABC):
    @abstractmethod
    def set_context(self, context: LifetimeContext) -> None:
        """Receive the lifetime context the bean was created under."""
