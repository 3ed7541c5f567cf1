"""Container configuration.

Defaults come from environment variables so that a deployment can tune the
container without code changes:

    BEANERY_CYCLE_TOLERANCE   repeats of a bean id tolerated in one resolution
                              chain before it counts as a cycle (default 0)
    BEANERY_STRICT_OVERWRITE  reject re-registration of a bean id instead of
                              replacing it (default false)
"""

import os
from dataclasses import dataclass, field

__all__ = ["ContainerConfig"]


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


@dataclass(frozen=True)
class ContainerConfig:
    """Tunable behaviour of a :class:`~beanery.container.Container`.

    Attributes:
        cycle_tolerance: How many times a prototype or request bean id may
            recur within one resolution chain before a circular dependency is
            reported. ``0`` reports any recurrence.
        strict_overwrite: Raise instead of replacing when a bean id is
            registered twice.
    """

    cycle_tolerance: int = field(
        default_factory=lambda: _env_int("BEANERY_CYCLE_TOLERANCE", 0)
    )
    strict_overwrite: bool = field(
        default_factory=lambda: _env_flag("BEANERY_STRICT_OVERWRITE")
    )

    def __post_init__(self):
        if self.cycle_tolerance < 0:
            raise ValueError("cycle_tolerance must not be negative")
