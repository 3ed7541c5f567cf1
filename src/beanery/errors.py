"""Exceptions raised by the container.

Every error derives from :class:`ContainerError`, so callers that only care
whether a lookup or registration worked can catch a single type.
"""

__all__ = [
    "ContainerError",
    "ContainerStateError",
    "BeanValidationError",
    "DependencyError",
    "BeanNotFoundError",
    "MissingDependencyError",
    "AmbiguousDependencyError",
    "ScopeError",
    "CircularDependencyError",
    "BeanCreationError",
    "BeanInitializationError",
]


class ContainerError(Exception):
    """Base class for all container errors."""

    pass


class ContainerStateError(ContainerError):
    """Raised when an operation is not legal in the container's current state."""

    pass


class BeanValidationError(ContainerError):
    """Raised when a bean descriptor, instance or injection field is malformed."""

    pass


class DependencyError(ContainerError):
    """Raised when a bean's dependency cannot be resolved."""

    pass


class BeanNotFoundError(DependencyError):
    def __init__(self, bean_id: str):
        super().__init__(f"no bean registered with id: {bean_id}")
        self.bean_id = bean_id


class MissingDependencyError(DependencyError):
    pass


class AmbiguousDependencyError(DependencyError):
    pass


class ScopeError(DependencyError):
    """Raised when a bean is used in a way its scope forbids."""

    pass


class CircularDependencyError(DependencyError):
    def __init__(self, bean_id: str):
        super().__init__(f"circular dependency detected for bean: {bean_id}")
        self.bean_id = bean_id


class BeanCreationError(ContainerError):
    """Raised when a bean factory or constructor fails."""

    def __init__(self, bean_id: str, message: str):
        super().__init__(message)
        self.bean_id = bean_id


class BeanInitializationError(ContainerError):
    """Raised when an initializer hook or postprocessor fails."""

    def __init__(self, bean_id: str, message: str):
        super().__init__(message)
        self.bean_id = bean_id
