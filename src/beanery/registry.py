"""Registration and introspection of bean descriptors."""

import inspect
import types
from collections import defaultdict
from typing import (
    Any,
    Annotated,
    Callable,
    Optional,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

import structlog

from beanery.domain import (
    BeanDescriptor,
    BeanFactory,
    FieldKind,
    Inject,
    InjectionTarget,
    is_reference,
    is_reference_type,
)
from beanery.errors import BeanValidationError
from beanery.scope import Scope, declared_scope

__all__ = [
    "Postprocessor",
    "BeanRegistry",
    "injection_targets",
    "parse_optional",
]

logger = structlog.get_logger(__name__)

Postprocessor = Callable[[Any], None]

UNSUPPORTED_DEPENDENCY_TYPE = (
    "unsupported dependency type: all injections must be done by reference"
)

_TRUE_LITERALS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_LITERALS = frozenset({"", "0", "f", "F", "FALSE", "false", "False"})


class BeanRegistry:
    """Table of bean descriptors, cached singletons and postprocessors.

    The registry validates what it is given but never creates instances and
    does no locking of its own; the container serializes access to it.
    """

    def __init__(self, strict_overwrite: bool = False):
        self._strict_overwrite = strict_overwrite
        self._descriptors: dict[str, BeanDescriptor] = {}
        self._singletons: dict[str, Any] = {}
        self._postprocessors: dict[type, list[Postprocessor]] = defaultdict(list)

    def register_type(self, bean_id: str, bean_type: type) -> bool:
        """Register a bean by class.

        The scope comes from the class's ``__bean_scope__`` attribute and the
        injection targets from its ``Inject``-annotated attributes; both are
        validated now rather than when the container initializes.

        Args:
            bean_id: Unique id of the bean.
            bean_type: The bean class. It must be constructible without
                arguments.

        Returns:
            ``True`` if a bean with the same id was replaced.

        Raises:
            BeanValidationError: If the class is not a reference type, declares
                an unsupported scope or has a malformed injection attribute.
        """
        _validate_bean_id(bean_id)
        if not is_reference_type(bean_type):
            raise BeanValidationError("bean type must be a reference type")

        descriptor = BeanDescriptor(
            bean_id,
            bean_type,
            declared_scope(bean_type),
            injection_targets=injection_targets(bean_type),
        )
        return self._put(descriptor)

    def register_instance(self, bean_id: str, instance: Any) -> bool:
        """Register a pre-built instance as a singleton bean.

        Returns:
            ``True`` if a bean with the same id was replaced.

        Raises:
            BeanValidationError: If the instance is an immutable value.
        """
        _validate_bean_id(bean_id)
        if not is_reference(instance):
            raise BeanValidationError("bean instance must be a reference")

        descriptor = BeanDescriptor(
            bean_id, type(instance), Scope.SINGLETON, user_created=True
        )
        return self._put(descriptor, instance)

    def register_factory(
        self, bean_id: str, scope: Union[Scope, str], factory: BeanFactory
    ) -> bool:
        """Register a bean produced by a factory.

        The factory is called with the lifetime context the bean is created
        under. Its return annotation, if it names a class, lets the bean take
        part in type-based injection.

        Returns:
            ``True`` if a bean with the same id was replaced.

        Raises:
            BeanValidationError: If the scope is unsupported or the factory is
                not callable.
        """
        _validate_bean_id(bean_id)
        parsed_scope = Scope.parse(scope)
        if not callable(factory):
            raise BeanValidationError("bean factory must be callable")

        descriptor = BeanDescriptor(
            bean_id, _declared_return_type(factory), parsed_scope, factory=factory
        )
        return self._put(descriptor)

    def register_postprocessor(self, bean_type: type, postprocessor: Postprocessor):
        if not isinstance(bean_type, type):
            raise BeanValidationError("postprocessor must be registered for a type")
        if not callable(postprocessor):
            raise BeanValidationError("bean postprocessor must be callable")
        self._postprocessors[bean_type].append(postprocessor)

    def get(self, bean_id: str) -> Optional[BeanDescriptor]:
        return self._descriptors.get(bean_id)

    def __contains__(self, bean_id: str) -> bool:
        return bean_id in self._descriptors

    def descriptors(self) -> list[BeanDescriptor]:
        return list(self._descriptors.values())

    def candidates_for(self, element_type: type) -> list[BeanDescriptor]:
        """Beans whose declared type is assignable to ``element_type``.

        Factories without a return annotation have no declared type and are
        never candidates.
        """
        return [
            descriptor
            for descriptor in self._descriptors.values()
            if descriptor.bean_type is not None
            and issubclass(descriptor.bean_type, element_type)
        ]

    def postprocessors_for(self, bean_type: type) -> list[Postprocessor]:
        return list(self._postprocessors.get(bean_type, ()))

    def singleton(self, bean_id: str) -> Any:
        return self._singletons[bean_id]

    def cache_singleton(self, bean_id: str, instance: Any):
        self._singletons[bean_id] = instance

    def singletons(self) -> list[tuple[str, Any]]:
        return list(self._singletons.items())

    def discard_created_singletons(self):
        """Drop every cached singleton the container built itself."""
        self._singletons = {
            bean_id: instance
            for bean_id, instance in self._singletons.items()
            if self._descriptors[bean_id].user_created
        }

    def bean_types(self) -> dict[str, type]:
        """Types of beans registered by class or instance.

        Factory beans are left out, since what they return is only known once
        they run.
        """
        return {
            bean_id: descriptor.bean_type
            for bean_id, descriptor in self._descriptors.items()
            if not descriptor.is_factory
        }

    def bean_scopes(self) -> dict[str, Scope]:
        return {
            bean_id: descriptor.scope
            for bean_id, descriptor in self._descriptors.items()
        }

    def bean_ids_in_scope(self, scope: Scope) -> list[str]:
        return [
            bean_id
            for bean_id, descriptor in self._descriptors.items()
            if descriptor.scope is scope
        ]

    def clear(self):
        self._descriptors.clear()
        self._singletons.clear()
        self._postprocessors.clear()

    def _put(self, descriptor: BeanDescriptor, instance: Any = None) -> bool:
        bean_id = descriptor.bean_id
        existing = self._descriptors.get(bean_id)
        if existing is not None:
            if self._strict_overwrite:
                raise BeanValidationError(
                    f"bean with id {bean_id!r} is already registered"
                )
            logger.warning(
                "bean_overwritten",
                bean_id=bean_id,
                registered_type=existing.bean_type,
                registered_scope=existing.scope.value,
                new_type=descriptor.bean_type,
                new_scope=descriptor.scope.value,
            )

        self._descriptors[bean_id] = descriptor
        self._singletons.pop(bean_id, None)
        if descriptor.user_created:
            self._singletons[bean_id] = instance
        return existing is not None


def injection_targets(bean_type: type) -> tuple[InjectionTarget, ...]:
    """Extract the injection targets declared on a bean class.

    Only attributes annotated with ``Annotated[..., Inject(...)]`` are
    targets; other annotations are ignored.

    Example:
        >>> class Service:
        ...     name: str
        ...     repository: Annotated[Repository, Inject("repository")]
        ...     plugins: Annotated[list[Plugin], Inject(optional="true")]
        >>> injection_targets(Service)
        >>> # Returns:
        >>> # (InjectionTarget("repository", "repository", False, FieldKind.SINGLE, Repository),
        >>> #  InjectionTarget("plugins", None, True, FieldKind.LIST, Plugin))

    Raises:
        BeanValidationError: If an annotation can't be resolved, a target's
            type is not a reference type, or its optional flag is not a boolean.
    """
    try:
        hints = get_type_hints(bean_type, include_extras=True)
    except (NameError, TypeError) as e:
        raise BeanValidationError(
            f"can't resolve annotations of {bean_type.__name__}: {e}"
        ) from e

    targets = (_make_target(attribute, hint) for attribute, hint in hints.items())
    return tuple(target for target in targets if target is not None)


def parse_optional(value: Union[bool, str]) -> bool:
    """Interpret an ``Inject(optional=...)`` flag.

    Raises:
        BeanValidationError: If the value is neither a bool nor a boolean literal.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        if value in _TRUE_LITERALS:
            return True
        if value in _FALSE_LITERALS:
            return False
    raise BeanValidationError(f"invalid optional value: {value}")


def _make_target(attribute: str, annotation: Any) -> Optional[InjectionTarget]:
    if get_origin(annotation) is not Annotated:
        return None

    declared_type, *metadata = get_args(annotation)
    marker = next((m for m in metadata if isinstance(m, Inject)), None)
    if marker is None:
        return None

    kind, element_type = _field_shape(declared_type)
    return InjectionTarget(
        attribute,
        marker.bean_id or None,
        parse_optional(marker.optional),
        kind,
        element_type,
    )


def _field_shape(declared_type: Any) -> tuple[FieldKind, type]:
    declared_type = _unwrap_optional(declared_type)
    origin = get_origin(declared_type)
    args = get_args(declared_type)

    if origin is list:
        if len(args) != 1:
            raise BeanValidationError(UNSUPPORTED_DEPENDENCY_TYPE)
        return FieldKind.LIST, _element_type(args[0])

    if origin is dict:
        if len(args) != 2 or args[0] is not str:
            raise BeanValidationError(UNSUPPORTED_DEPENDENCY_TYPE)
        return FieldKind.MAP, _element_type(args[1])

    return FieldKind.SINGLE, _element_type(declared_type)


def _element_type(candidate: Any) -> type:
    candidate = _unwrap_optional(candidate)
    if not is_reference_type(candidate):
        raise BeanValidationError(UNSUPPORTED_DEPENDENCY_TYPE)
    try:
        # non-runtime protocols can't take part in type-based lookup
        issubclass(object, candidate)
    except TypeError:
        raise BeanValidationError(UNSUPPORTED_DEPENDENCY_TYPE) from None
    return candidate


def _unwrap_optional(annotation: Any) -> Any:
    if get_origin(annotation) not in (Union, types.UnionType):
        return annotation
    remaining = [arg for arg in get_args(annotation) if arg is not type(None)]
    return remaining[0] if len(remaining) == 1 else annotation


def _declared_return_type(factory: Callable) -> Optional[type]:
    if inspect.isclass(factory):
        return factory if is_reference_type(factory) else None
    try:
        return_type = get_type_hints(factory).get("return")
    except (NameError, TypeError):
        return None
    return_type = _unwrap_optional(return_type)
    return return_type if is_reference_type(return_type) else None


def _validate_bean_id(bean_id: Any):
    if not isinstance(bean_id, str):
        raise BeanValidationError(f"bean id must be a string, got {bean_id!r}")
