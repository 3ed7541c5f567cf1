"""Creation and post-construction of bean instances.

This module provides the BeanBuilder class, which turns a bean descriptor into
a fresh instance (by calling its factory or its class) and runs the
post-construction pipeline on finished instances: the initializer hook, the
registered postprocessors and finally the hand-over of the lifetime context.
"""

import threading
from typing import Any

import structlog

from beanery.capabilities import ContextAwareBean, InitializingBean
from beanery.context import LifetimeContext
from beanery.domain import BeanDescriptor, is_reference
from beanery.errors import (
    BeanCreationError,
    BeanInitializationError,
    ContainerError,
)
from beanery.registry import BeanRegistry

__all__ = ["BeanBuilder"]

logger = structlog.get_logger(__name__)


class BeanBuilder:
    """Build bean instances from descriptors.

    Only one instance is under construction at a time: every creation goes
    through a single lock, held for that one factory or constructor call and
    released before the new instance's dependencies are resolved. The lock is
    re-entrant so a factory may itself look up other beans.
    """

    def __init__(self, registry: BeanRegistry):
        self._registry = registry
        self._creation_lock = threading.RLock()

    def create(self, context: LifetimeContext, descriptor: BeanDescriptor) -> Any:
        """Create an uninjected instance of a bean.

        Args:
            context: The lifetime context passed to factories.
            descriptor: The bean to instantiate.

        Returns:
            The new instance.

        Raises:
            BeanCreationError: If the factory or constructor raises, or the
                factory returns an immutable value.
        """
        with self._creation_lock:
            logger.debug(
                "creating_instance",
                bean_id=descriptor.bean_id,
                scope=descriptor.scope.value,
            )
            if descriptor.is_factory:
                return self._call_factory(context, descriptor)
            return self._construct(descriptor)

    def post_construct(
        self, bean_id: str, instance: Any, context: LifetimeContext
    ) -> None:
        """Run the post-construction pipeline on a fully injected instance.

        In order: ``InitializingBean.post_construct``, every postprocessor
        registered for the instance's exact type, then
        ``ContextAwareBean.set_context``.

        Raises:
            BeanInitializationError: If any step raises.
        """
        if isinstance(instance, InitializingBean):
            logger.debug("initializing_bean", bean_id=bean_id)
            try:
                instance.post_construct()
            except Exception as e:
                raise BeanInitializationError(
                    bean_id, f"post_construct of bean {bean_id!r} failed: {e}"
                ) from e

        postprocessors = self._registry.postprocessors_for(type(instance))
        if postprocessors:
            logger.debug(
                "postprocessing_bean", bean_id=bean_id, count=len(postprocessors)
            )
        for postprocessor in postprocessors:
            try:
                postprocessor(instance)
            except Exception as e:
                raise BeanInitializationError(
                    bean_id, f"postprocessor of bean {bean_id!r} failed: {e}"
                ) from e

        if isinstance(instance, ContextAwareBean):
            try:
                instance.set_context(context)
            except Exception as e:
                raise BeanInitializationError(
                    bean_id, f"set_context of bean {bean_id!r} failed: {e}"
                ) from e

    def _call_factory(
        self, context: LifetimeContext, descriptor: BeanDescriptor
    ) -> Any:
        try:
            instance = descriptor.factory(context)
        except ContainerError:
            raise
        except Exception as e:
            raise BeanCreationError(
                descriptor.bean_id,
                f"factory of bean {descriptor.bean_id!r} failed: {e}",
            ) from e

        if not is_reference(instance):
            raise BeanCreationError(
                descriptor.bean_id, "bean factory must return a reference"
            )
        return instance

    def _construct(self, descriptor: BeanDescriptor) -> Any:
        try:
            return descriptor.bean_type()
        except ContainerError:
            raise
        except Exception as e:
            raise BeanCreationError(
                descriptor.bean_id,
                f"can't construct bean {descriptor.bean_id!r} "
                f"of type {descriptor.bean_type.__name__}: {e}",
            ) from e
