"""Dependency resolution and injection.

The resolver turns a bean id into an instance: singletons come from the cache,
prototype and request beans are created, injected and post-constructed on the
spot. Injection walks a bean's parsed injection targets, picks the beans that
satisfy each one (by explicit id, or by type among all registered beans) and
resolves them recursively through the same resolver.

Each top-level resolution carries a :class:`ResolutionChain` recording which
non-singleton beans are being built, so that a bean that (directly or
indirectly) needs a fresh copy of itself is reported instead of recursing
forever. Singletons never enter the chain: a singleton referring back to
itself simply receives the cached instance.
"""

from collections import Counter
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import structlog

from beanery.bean_builder import BeanBuilder
from beanery.context import LifetimeContext
from beanery.domain import BeanDescriptor, FieldKind, InjectionTarget
from beanery.errors import (
    AmbiguousDependencyError,
    BeanCreationError,
    BeanNotFoundError,
    CircularDependencyError,
    DependencyError,
    MissingDependencyError,
    ScopeError,
)
from beanery.registry import BeanRegistry

__all__ = ["ResolutionChain", "DependencyResolver"]

logger = structlog.get_logger(__name__)


class ResolutionChain:
    """Bean ids currently under construction within one top-level resolution.

    Args:
        tolerance: How many times an id may already be active when it is
            entered again. ``0`` treats any recurrence as a cycle.
    """

    def __init__(self, tolerance: int = 0):
        self._tolerance = tolerance
        self._active: Counter[str] = Counter()

    @contextmanager
    def entering(self, bean_id: str) -> Iterator[None]:
        """Mark ``bean_id`` active for the duration of the block.

        Raises:
            CircularDependencyError: If the id is already active more often
                than the tolerance allows.
        """
        if self._active[bean_id] > self._tolerance:
            raise CircularDependencyError(bean_id)
        self._active[bean_id] += 1
        try:
            yield
        finally:
            self._active[bean_id] -= 1

    def __contains__(self, bean_id: str) -> bool:
        return self._active[bean_id] > 0


class DependencyResolver:
    """Resolve bean ids to instances and wire instances' dependencies."""

    def __init__(
        self, registry: BeanRegistry, builder: BeanBuilder, cycle_tolerance: int = 0
    ):
        self._registry = registry
        self._builder = builder
        self._cycle_tolerance = cycle_tolerance

    def new_chain(self) -> ResolutionChain:
        return ResolutionChain(self._cycle_tolerance)

    def resolve(
        self, context: LifetimeContext, bean_id: str, chain: ResolutionChain
    ) -> Any:
        """Return an instance of a bean according to its scope.

        Args:
            context: Lifetime context for newly created beans.
            bean_id: The bean to resolve.
            chain: The resolution chain of the current top-level request.

        Raises:
            BeanNotFoundError: If no bean has this id.
            CircularDependencyError: If the bean is already being built in
                this chain.
            DependencyError: If one of its dependencies can't be satisfied.
        """
        descriptor = self._registry.get(bean_id)
        if descriptor is None:
            raise BeanNotFoundError(bean_id)

        if descriptor.scope.is_cached:
            try:
                return self._registry.singleton(bean_id)
            except KeyError:
                raise DependencyError(
                    f"singleton bean {bean_id!r} has not been created yet"
                ) from None

        with chain.entering(bean_id):
            instance = self._builder.create(context, descriptor)
            if not descriptor.is_factory:
                self.inject(context, descriptor, instance, chain)
            self._builder.post_construct(bean_id, instance, context)
        return instance

    def inject(
        self,
        context: LifetimeContext,
        descriptor: BeanDescriptor,
        instance: Any,
        chain: ResolutionChain,
    ) -> None:
        """Assign every injection target of ``instance``.

        Targets left unsatisfied because they are optional are set to ``None``,
        unless the instance already carries a value for them.

        Raises:
            BeanCreationError: If the instance refuses the assignment, e.g. a
                frozen dataclass or a read-only property.
        """
        logger.debug("injecting_dependencies", bean_id=descriptor.bean_id)
        for target in descriptor.injection_targets:
            bean_ids = self._select(descriptor.bean_id, target)
            if bean_ids is None:
                if not hasattr(instance, target.attribute):
                    _assign(descriptor.bean_id, instance, target, None)
                continue

            resolved = {
                bean_id: self._resolve_dependency(
                    context, descriptor.bean_id, target, bean_id, chain
                )
                for bean_id in bean_ids
            }
            _assign(descriptor.bean_id, instance, target, _shape(target, resolved))

    def _select(self, owner: str, target: InjectionTarget) -> Optional[list[str]]:
        """Pick the bean ids that satisfy a target, or ``None`` to leave it unset."""
        if target.bean_id is not None:
            if target.bean_id in self._registry:
                return [target.bean_id]
            if target.optional:
                logger.debug(
                    "optional_dependency_missing",
                    bean_id=owner,
                    attribute=target.attribute,
                    dependency=target.bean_id,
                )
                return None
            raise MissingDependencyError(
                f"no dependency found: bean {owner!r} requires bean "
                f"{target.bean_id!r} for attribute {target.attribute!r}"
            )

        candidates = [
            candidate.bean_id
            for candidate in self._registry.candidates_for(target.element_type)
        ]

        if target.kind is FieldKind.SINGLE:
            if len(candidates) > 1:
                raise AmbiguousDependencyError(
                    f"multiple candidates for dependency {owner}.{target.attribute} "
                    f"on type {target.element_type.__name__}: {candidates}"
                )
            if not candidates:
                if target.optional:
                    return None
                raise MissingDependencyError(
                    f"no dependency found: bean {owner!r} requires a bean of type "
                    f"{target.element_type.__name__} for attribute {target.attribute!r}"
                )
            return candidates

        if not candidates and target.optional:
            return None
        return candidates

    def _resolve_dependency(
        self,
        context: LifetimeContext,
        owner: str,
        target: InjectionTarget,
        bean_id: str,
        chain: ResolutionChain,
    ) -> Any:
        descriptor = self._registry.get(bean_id)
        if descriptor is None:
            # the registry was cleared while this resolution was running
            raise BeanNotFoundError(bean_id)
        if not descriptor.scope.is_injectable:
            raise ScopeError(
                f"request-scoped beans can't be injected: bean {bean_id!r} "
                f"requested by {owner}.{target.attribute} can only be retrieved "
                "from its request context"
            )

        logger.debug(
            "resolving_dependency",
            bean_id=owner,
            attribute=target.attribute,
            dependency=bean_id,
        )
        dependency = self.resolve(context, bean_id, chain)
        if not isinstance(dependency, target.element_type):
            raise DependencyError(
                f"bean {bean_id!r} of type {type(dependency).__name__} can't be "
                f"injected into {owner}.{target.attribute} of type "
                f"{target.element_type.__name__}"
            )
        return dependency


def _assign(owner: str, instance: Any, target: InjectionTarget, value: Any) -> None:
    try:
        setattr(instance, target.attribute, value)
    except Exception as e:
        raise BeanCreationError(
            owner, f"can't inject {owner}.{target.attribute}: {e}"
        ) from e


def _shape(target: InjectionTarget, resolved: dict[str, Any]) -> Any:
    if target.kind is FieldKind.SINGLE:
        return next(iter(resolved.values()))
    if target.kind is FieldKind.LIST:
        return list(resolved.values())
    return resolved
