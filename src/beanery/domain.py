"""Domain models used throughout the container."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Union

from beanery.context import LifetimeContext
from beanery.scope import Scope

__all__ = [
    "VALUE_TYPES",
    "Inject",
    "FieldKind",
    "InjectionTarget",
    "BeanDescriptor",
    "BeanFactory",
    "is_reference_type",
    "is_reference",
]

VALUE_TYPES: tuple[type, ...] = (
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    tuple,
    frozenset,
    type(None),
)
"""Immutable value types; neither beans nor injection targets may be one of these."""

BeanFactory = Callable[[LifetimeContext], Any]


def is_reference_type(candidate: Any) -> bool:
    """Whether ``candidate`` is a class whose instances can be shared as beans.

    Example:
        >>> is_reference_type(Database)  # True
        >>> is_reference_type(str)       # False
        >>> is_reference_type("db")      # False
    """
    return isinstance(candidate, type) and not issubclass(candidate, VALUE_TYPES)


def is_reference(instance: Any) -> bool:
    """Whether ``instance`` can be shared as a bean."""
    return not isinstance(instance, VALUE_TYPES)


@dataclass(frozen=True)
class Inject:
    """Marks a class attribute for injection.

    Used as ``typing.Annotated`` metadata on the bean class:

        >>> class Service:
        ...     repository: Annotated[Repository, Inject("repository")]
        ...     plugins: Annotated[list[Plugin], Inject()]
        ...     cache: Annotated[Cache, Inject(optional=True)]

    Attributes:
        bean_id: Id of the bean to inject. ``None`` infers the target from the
            attribute's declared type.
        optional: Whether a missing dependency is tolerated. Accepts a bool or
            a boolean literal such as ``"true"`` or ``"0"``.
    """

    bean_id: Optional[str] = None
    optional: Union[bool, str] = False


class FieldKind(Enum):
    SINGLE = "single"
    LIST = "list"
    MAP = "map"


@dataclass(frozen=True)
class InjectionTarget:
    """An attribute of a bean class that the container fills in.

    Attributes:
        attribute: Name of the attribute on the bean instance.
        bean_id: Explicit target bean id, or ``None`` for type-based injection.
        optional: Whether a missing dependency is tolerated.
        kind: Whether the attribute holds one bean, a list of beans or a map
            from bean id to bean.
        element_type: The type every injected bean must be assignable to.
    """

    attribute: str
    bean_id: Optional[str]
    optional: bool
    kind: FieldKind
    element_type: type


@dataclass(frozen=True)
class BeanDescriptor:
    """Everything the container knows about one registered bean.

    Attributes:
        bean_id: Unique id of the bean.
        bean_type: Class of the bean. For factories this is the declared return
            type, or ``None`` when the factory is not annotated.
        scope: Lifetime policy of the bean.
        factory: Callable producing the bean from a lifetime context, if the
            bean was registered by factory.
        user_created: Whether the caller supplied a pre-built instance.
        injection_targets: Attributes to inject, parsed at registration time.
    """

    bean_id: str
    bean_type: Optional[type]
    scope: Scope
    factory: Optional[BeanFactory] = None
    user_created: bool = False
    injection_targets: tuple[InjectionTarget, ...] = field(default=())

    @property
    def is_factory(self) -> bool:
        return self.factory is not None
