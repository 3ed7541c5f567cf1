"""A process-wide default container with a function-style API.

Applications with one container per process can use these functions instead
of passing a :class:`~beanery.container.Container` around:

    from beanery import default

    default.register_bean("repository", Repository)
    default.initialize_container()
    repository = default.get_instance("repository")
"""

import threading
from typing import Any, Optional, Union

from beanery.container import Container, LookupResult
from beanery.domain import BeanFactory
from beanery.registry import Postprocessor
from beanery.scope import Scope

__all__ = [
    "get_container",
    "reset_container",
    "register_bean",
    "register_bean_instance",
    "register_bean_factory",
    "register_bean_postprocessor",
    "initialize_container",
    "get_instance",
    "get_instance_safe",
    "get_bean_types",
    "get_bean_scopes",
    "close",
]

_container: Optional[Container] = None
_container_lock = threading.Lock()


def get_container() -> Container:
    """Get or create the process-wide container."""
    global _container
    if _container is None:
        with _container_lock:
            if _container is None:
                _container = Container()
    return _container


def reset_container() -> None:
    """Forget every registration, e.g. between independent test runs."""
    get_container().reset()


def register_bean(bean_id: str, bean_type: type) -> bool:
    return get_container().register_bean(bean_id, bean_type)


def register_bean_instance(bean_id: str, instance: Any) -> bool:
    return get_container().register_bean_instance(bean_id, instance)


def register_bean_factory(
    bean_id: str, scope: Union[Scope, str], factory: BeanFactory
) -> bool:
    return get_container().register_bean_factory(bean_id, scope, factory)


def register_bean_postprocessor(bean_type: type, postprocessor: Postprocessor) -> None:
    get_container().register_bean_postprocessor(bean_type, postprocessor)


def initialize_container() -> None:
    get_container().initialize()


def get_instance(bean_id: str) -> Any:
    return get_container().get_instance(bean_id)


def get_instance_safe(bean_id: str) -> LookupResult:
    return get_container().get_instance_safe(bean_id)


def get_bean_types() -> dict[str, type]:
    return get_container().get_bean_types()


def get_bean_scopes() -> dict[str, Scope]:
    return get_container().get_bean_scopes()


def close() -> None:
    get_container().close()
