"""Bean scopes and the operations each of them permits."""

from enum import Enum
from typing import Any, Union

from beanery.errors import BeanValidationError

__all__ = ["Scope", "bean_scope", "declared_scope"]

SCOPE_ATTRIBUTE = "__bean_scope__"


class Scope(str, Enum):
    """Lifetime and sharing policy of a bean.

    Attributes:
        SINGLETON: One instance per container lifetime, created while the
            container initializes and cached until it is closed.
        PROTOTYPE: A fresh instance for every lookup and every injection.
        REQUEST: One instance per unit of work (e.g. a web request), created
            by the request adapter and closed when that unit of work ends.
    """

    SINGLETON = "singleton"
    PROTOTYPE = "prototype"
    REQUEST = "request"

    @property
    def is_eager(self) -> bool:
        return self is Scope.SINGLETON

    @property
    def is_cached(self) -> bool:
        return self is Scope.SINGLETON

    @property
    def is_injectable(self) -> bool:
        return self is not Scope.REQUEST

    @property
    def is_retrievable(self) -> bool:
        return self is not Scope.REQUEST

    @classmethod
    def parse(cls, value: Union["Scope", str]) -> "Scope":
        """Convert a scope literal to a :class:`Scope`.

        Raises:
            BeanValidationError: If the value names no supported scope.

        Example:
            >>> Scope.parse("prototype")  # Scope.PROTOTYPE
            >>> Scope.parse("session")    # raises BeanValidationError
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise BeanValidationError(f"unsupported scope: {value}") from None


def declared_scope(bean_type: type) -> Scope:
    """Read the scope a bean class declares, defaulting to singleton."""
    return Scope.parse(getattr(bean_type, SCOPE_ATTRIBUTE, Scope.SINGLETON))


def bean_scope(scope: Union[Scope, str]):
    """Class decorator declaring the scope of a bean class.

    Example:
        @bean_scope(Scope.PROTOTYPE)
        class Session:
            ...
    """
    parsed = Scope.parse(scope)

    def decorator(target: Any) -> Any:
        setattr(target, SCOPE_ATTRIBUTE, parsed)
        return target

    return decorator
