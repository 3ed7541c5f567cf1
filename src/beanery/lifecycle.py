"""Container-wide startup and shutdown of eager beans."""

from typing import Any, Callable

import structlog

from beanery.bean_builder import BeanBuilder
from beanery.capabilities import Closeable
from beanery.context import background_context
from beanery.registry import BeanRegistry
from beanery.resolver import DependencyResolver

__all__ = ["LifecycleManager"]

logger = structlog.get_logger(__name__)


class LifecycleManager:
    """Build the singleton graph at startup and tear it down at shutdown.

    Startup runs in four steps: create every eager instance, inject their
    dependencies, declare the container ready, then post-construct each
    instance. Post-construction comes after the container is ready so that
    initializer hooks may look up other beans.
    """

    def __init__(
        self,
        registry: BeanRegistry,
        builder: BeanBuilder,
        resolver: DependencyResolver,
    ):
        self._registry = registry
        self._builder = builder
        self._resolver = resolver

    def start(self, on_ready: Callable[[], None]) -> None:
        """Create, wire and initialize every singleton.

        Args:
            on_ready: Called once all singletons are created and injected,
                before any of them is post-constructed.

        Raises:
            ContainerError: From any step. Singletons built by this call are
                discarded before the error propagates; those already
                post-constructed are closed first.
        """
        initialized: list[tuple[str, Any]] = []
        try:
            self._create_eager_instances()
            self._inject_eager_instances()
            on_ready()
            self._initialize_eager_instances(initialized)
        except Exception:
            self._close_all(
                (bean_id, instance)
                for bean_id, instance in initialized
                if not self._registry.get(bean_id).user_created
            )
            self._registry.discard_created_singletons()
            raise
        logger.info("container_initialized", beans=len(self._registry.descriptors()))

    def shutdown(self) -> None:
        """Close every closeable singleton and clear the registry.

        A failing ``close`` is logged and does not keep the remaining beans
        from being closed.
        """
        self._close_all(self._registry.singletons())
        self._registry.clear()
        logger.info("container_closed")

    def _close_all(self, instances) -> None:
        for bean_id, instance in instances:
            if not isinstance(instance, Closeable):
                continue
            logger.debug("closing_bean", bean_id=bean_id)
            try:
                instance.close()
            except Exception:
                logger.error("bean_close_failed", bean_id=bean_id, exc_info=True)

    def _create_eager_instances(self) -> None:
        context = background_context()
        eager = [d for d in self._registry.descriptors() if d.scope.is_eager]

        # beans registered by type first, factories second
        by_type = [d for d in eager if not d.user_created and not d.is_factory]
        by_factory = [d for d in eager if d.is_factory]
        for descriptor in by_type + by_factory:
            instance = self._builder.create(context, descriptor)
            self._registry.cache_singleton(descriptor.bean_id, instance)
            logger.debug(
                "singleton_created",
                bean_id=descriptor.bean_id,
                factory=descriptor.is_factory,
            )

    def _inject_eager_instances(self) -> None:
        context = background_context()
        for bean_id, instance in self._registry.singletons():
            descriptor = self._registry.get(bean_id)
            if descriptor.user_created or descriptor.is_factory:
                continue
            self._resolver.inject(
                context, descriptor, instance, self._resolver.new_chain()
            )

    def _initialize_eager_instances(self, initialized: list[tuple[str, Any]]) -> None:
        context = background_context()
        for bean_id, instance in self._registry.singletons():
            self._builder.post_construct(bean_id, instance, context)
            initialized.append((bean_id, instance))
