"""Beanery inversion-of-control container.

Beanery constructs, wires and manages the lifetime of application objects
("beans") from explicit registrations. Inspired by Spring's bean container, it
keeps registration declarative and resolution deterministic: singletons are
built once at startup, prototypes on every lookup, and request beans once per
unit of work.

Key Features:
    - Registration by class, by pre-built instance or by factory
    - Singleton, prototype and request scopes
    - Injection by bean id or by type, into single, list and map attributes
    - Circular dependency detection for non-singleton beans
    - Initializer hooks, postprocessors and close hooks in a fixed order
    - Thread-safe registration, initialization and shutdown

Basic Usage:
    >>> from typing import Annotated
    >>> from beanery.container import Container
    >>> from beanery.domain import Inject
    >>>
    >>> class Database:
    ...     pass
    >>>
    >>> class UserService:
    ...     database: Annotated[Database, Inject()]
    >>>
    >>> container = Container()
    >>> container.register_bean("database", Database)
    >>> container.register_bean("users", UserService)
    >>> container.initialize()
    >>> users = container.get_instance("users")

The framework consists of several core modules:
    - container: The container, its state machine and lookup operations
    - registry: Bean registration and validation
    - resolver: Dependency resolution, injection and cycle detection
    - bean_builder: Instance creation and the post-construction pipeline
    - lifecycle: Startup and shutdown of singletons
    - scope: Bean scopes
    - capabilities: Hooks a bean can opt into
    - context: Lifetime contexts for request beans
    - middleware: Request-scope binding, including a WSGI middleware
    - default: A process-wide default container
    - domain: Core domain models (BeanDescriptor, InjectionTarget, Inject)
    - errors: Framework-specific exceptions
"""
