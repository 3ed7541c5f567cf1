"""The container: registration, lifecycle state and bean lookup.

A :class:`Container` moves through three states. While UNINITIALIZED, beans,
factories and postprocessors may be registered. :meth:`Container.initialize`
builds every singleton and moves to READY, after which beans can be looked up
but nothing can be registered any more. :meth:`Container.close` tears the
singletons down (CLOSED while it runs) and returns the container to an empty
UNINITIALIZED state.

Basic Usage:
    >>> class Repository:
    ...     pass
    >>>
    >>> class Service:
    ...     repository: Annotated[Repository, Inject("repository")]
    >>>
    >>> container = Container()
    >>> container.register_bean("repository", Repository)
    >>> container.register_bean("service", Service)
    >>> container.initialize()
    >>> container.get_instance("service").repository is container.get_instance("repository")
    True
"""

import threading
from enum import Enum
from typing import Any, NamedTuple, Optional, Union

import structlog

from beanery.bean_builder import BeanBuilder
from beanery.config import ContainerConfig
from beanery.context import LifetimeContext, background_context
from beanery.domain import BeanFactory
from beanery.errors import ContainerError, ContainerStateError, ScopeError
from beanery.lifecycle import LifecycleManager
from beanery.registry import BeanRegistry, Postprocessor
from beanery.resolver import DependencyResolver
from beanery.scope import Scope

__all__ = ["ContainerState", "LookupResult", "Container"]

logger = structlog.get_logger(__name__)


class ContainerState(Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    CLOSED = "closed"


class LookupResult(NamedTuple):
    """Outcome of :meth:`Container.get_instance_safe`; exactly one field is set."""

    instance: Any
    error: Optional[ContainerError]


class Container:
    """Inversion-of-control container managing bean construction and lifetime.

    All registration and the initialize/close transitions run under one
    registry lock; ``initialize`` holds it for its whole run, so a registration
    attempted concurrently waits and then fails because the container is
    already initialized. Lookups read the state without locking: once the
    container is ready its registry no longer changes.
    """

    def __init__(self, config: Optional[ContainerConfig] = None):
        self._config = config or ContainerConfig()
        self._lock = threading.RLock()
        self._initializing = False
        self._state = ContainerState.UNINITIALIZED
        self._build()

    def _build(self):
        self._registry = BeanRegistry(self._config.strict_overwrite)
        self._builder = BeanBuilder(self._registry)
        self._resolver = DependencyResolver(
            self._registry, self._builder, self._config.cycle_tolerance
        )
        self._lifecycle = LifecycleManager(
            self._registry, self._builder, self._resolver
        )

    @property
    def state(self) -> ContainerState:
        return self._state

    @property
    def is_initialized(self) -> bool:
        return self._state is ContainerState.READY

    def register_bean(self, bean_id: str, bean_type: type) -> bool:
        """Register a bean by class.

        The class declares its scope with ``__bean_scope__`` (singleton when
        absent) and its dependencies with ``Annotated[..., Inject(...)]``
        attributes. It must be constructible without arguments.

        Returns:
            ``True`` if a bean with the same id was replaced.

        Raises:
            ContainerStateError: If the container is already initialized.
            BeanValidationError: If the class or its injection attributes are
                invalid.
        """
        with self._lock:
            self._require_registration_allowed("can't register new bean")
            return self._registry.register_type(bean_id, bean_type)

    def register_bean_instance(self, bean_id: str, instance: Any) -> bool:
        """Register a pre-built instance as a singleton.

        The instance is not injected, but it does go through the
        post-construction pipeline when the container initializes.

        Returns:
            ``True`` if a bean with the same id was replaced.
        """
        with self._lock:
            self._require_registration_allowed("can't register new bean")
            return self._registry.register_instance(bean_id, instance)

    def register_bean_factory(
        self, bean_id: str, scope: Union[Scope, str], factory: BeanFactory
    ) -> bool:
        """Register a bean created by ``factory(context)``.

        Singleton factories run exactly once, during :meth:`initialize`.
        Factory results are not injected; the factory is expected to return a
        fully built object.

        Returns:
            ``True`` if a bean with the same id was replaced.
        """
        with self._lock:
            self._require_registration_allowed("can't register new bean factory")
            return self._registry.register_factory(bean_id, scope, factory)

    def register_bean_postprocessor(
        self, bean_type: type, postprocessor: Postprocessor
    ) -> None:
        """Register a function applied to every bean whose exact type is ``bean_type``.

        Postprocessors run after the bean's ``post_construct`` hook, in the
        order they were registered.
        """
        with self._lock:
            self._require_registration_allowed("can't register bean postprocessor")
            self._registry.register_postprocessor(bean_type, postprocessor)

    def initialize(self) -> None:
        """Build every singleton and make the container ready for lookups.

        Raises:
            ContainerStateError: If the container was already initialized.
            ContainerError: If any singleton can't be created, injected or
                initialized. The container is then left uninitialized.
        """
        with self._lock:
            if self._initializing or self._state is not ContainerState.UNINITIALIZED:
                raise ContainerStateError(
                    "container is already initialized: reinitialization is not supported"
                )
            self._initializing = True
            try:
                self._lifecycle.start(self._mark_ready)
            except Exception:
                self._state = ContainerState.UNINITIALIZED
                raise
            finally:
                self._initializing = False

    def get_instance(self, bean_id: str) -> Any:
        """Return an instance of a bean, raising on any failure.

        Convenient during startup and in tests; request-handling code that
        must not fail should prefer :meth:`get_instance_safe`.

        Raises:
            ContainerStateError: If the container is not initialized.
            ScopeError: If the bean is request-scoped.
            ContainerError: If the bean can't be resolved.
        """
        self._require_ready()
        descriptor = self._registry.get(bean_id)
        if descriptor is not None and not descriptor.scope.is_retrievable:
            raise ScopeError(
                "request-scoped beans can't be retrieved directly from the "
                "container: they can only be retrieved from their request context"
            )
        return self._resolver.resolve(
            background_context(), bean_id, self._resolver.new_chain()
        )

    def get_instance_safe(self, bean_id: str) -> LookupResult:
        """Return an instance of a bean without raising container errors.

        Example:
            >>> instance, error = container.get_instance_safe("service")
            >>> if error is not None:
            ...     ...
        """
        try:
            return LookupResult(self.get_instance(bean_id), None)
        except ContainerError as e:
            return LookupResult(None, e)

    def resolve_in_context(self, bean_id: str, context: LifetimeContext) -> Any:
        """Create an instance of a bean under a caller-supplied lifetime context.

        This is how request beans come to life: the request adapter calls it
        once per bean and unit of work. Prototype beans may be resolved this
        way too; singletons are returned from the cache.

        Raises:
            ContainerStateError: If the container is not initialized.
        """
        self._require_ready()
        return self._resolver.resolve(context, bean_id, self._resolver.new_chain())

    def request_bean_ids(self) -> list[str]:
        return self._registry.bean_ids_in_scope(Scope.REQUEST)

    def get_bean_types(self) -> dict[str, type]:
        """Copy of the types of beans registered by class or instance."""
        with self._lock:
            return self._registry.bean_types()

    def get_bean_scopes(self) -> dict[str, Scope]:
        """Copy of the scopes of all registered beans."""
        with self._lock:
            return self._registry.bean_scopes()

    def close(self) -> None:
        """Close every closeable singleton and empty the container.

        Failures of individual beans are logged, never raised. Closing a
        container that is not initialized does nothing.
        """
        with self._lock:
            if self._state is not ContainerState.READY:
                logger.debug("close_skipped", state=self._state.value)
                return
            self._state = ContainerState.CLOSED
            try:
                self._lifecycle.shutdown()
            finally:
                self._state = ContainerState.UNINITIALIZED

    def reset(self) -> None:
        """Discard every registration and cached bean without closing anything."""
        with self._lock:
            self._build()
            self._state = ContainerState.UNINITIALIZED

    def __enter__(self) -> "Container":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _mark_ready(self) -> None:
        self._state = ContainerState.READY

    def _require_registration_allowed(self, operation: str) -> None:
        if self._initializing or self._state is not ContainerState.UNINITIALIZED:
            raise ContainerStateError(f"container is already initialized: {operation}")

    def _require_ready(self) -> None:
        if self._state is ContainerState.READY:
            return
        if self._state is ContainerState.CLOSED:
            raise ContainerStateError("container is closed: can't lookup instances of beans")
        raise ContainerStateError(
            "container is not initialized: can't lookup instances of beans yet"
        )
