from dataclasses import dataclass
from typing import Annotated, Optional

import pytest

from beanery.bean_builder import BeanBuilder
from beanery.config import ContainerConfig
from beanery.container import Container
from beanery.context import background_context
from beanery.domain import Inject
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
from beanery.resolver import DependencyResolver, ResolutionChain
from beanery.scope import Scope


class Printer:
    pass


class ConsolePrinter(Printer):
    pass


class FilePrinter(Printer):
    pass


class Formatter:
    pass


@pytest.fixture
def container() -> Container:
    return Container()


def test_inject_singleton_by_id(container):
    class Service:
        printer: Annotated[Printer, Inject("printer")]

    container.register_bean("printer", ConsolePrinter)
    container.register_bean("service", Service)
    container.initialize()

    assert container.get_instance("service").printer is container.get_instance("printer")


def test_inject_factory_bean_by_id(container):
    class Service:
        printer: Annotated[Printer, Inject("printer")]

    container.register_bean_factory("printer", Scope.SINGLETON, lambda ctx: FilePrinter())
    container.register_bean("service", Service)
    container.initialize()

    assert container.get_instance("service").printer is container.get_instance("printer")


def test_prototype_dependency_is_fresh_per_injection(container):
    class Service:
        __bean_scope__ = "prototype"
        formatter: Annotated[Formatter, Inject("formatter")]

    class Report:
        formatter: Annotated[Formatter, Inject("formatter")]

    container.register_bean_factory("formatter", Scope.PROTOTYPE, lambda ctx: Formatter())
    container.register_bean("service", Service)
    container.register_bean("report", Report)
    container.initialize()

    first = container.get_instance("service")
    second = container.get_instance("service")

    assert first.formatter is not second.formatter
    assert container.get_instance("report").formatter is not first.formatter


def test_missing_required_dependency_fails_initialization(container):
    class Service:
        printer: Annotated[Printer, Inject("printer")]

    container.register_bean("service", Service)

    with pytest.raises(MissingDependencyError, match="no dependency found"):
        container.initialize()
    assert not container.is_initialized


def test_explicitly_required_dependency_is_required(container):
    class Service:
        printer: Annotated[Printer, Inject("printer", optional="false")]

    container.register_bean("service", Service)

    with pytest.raises(MissingDependencyError, match="no dependency found"):
        container.initialize()


def test_missing_optional_dependency_is_left_unset(container):
    class Service:
        printer: Annotated[Printer, Inject("printer", optional=True)]

    container.register_bean("service", Service)
    container.initialize()

    assert container.get_instance("service").printer is None


def test_optional_dependency_keeps_class_default(container):
    default_printer = Printer()

    class Service:
        printer: Annotated[Printer, Inject("printer", optional=True)] = default_printer

    container.register_bean("service", Service)
    container.initialize()

    assert container.get_instance("service").printer is default_printer


def test_explicit_id_of_wrong_type_raises(container):
    class Service:
        printer: Annotated[Printer, Inject("formatter")]

    container.register_bean("formatter", Formatter)
    container.register_bean("service", Service)

    with pytest.raises(DependencyError, match="can't be injected into service.printer"):
        container.initialize()


def test_inject_single_candidate_by_type(container):
    class Service:
        printer: Annotated[Printer, Inject()]

    container.register_bean("console", ConsolePrinter)
    container.register_bean("formatter", Formatter)
    container.register_bean("service", Service)
    container.initialize()

    assert container.get_instance("service").printer is container.get_instance("console")


def test_factory_with_return_annotation_is_a_candidate(container):
    class Service:
        printer: Annotated[Printer, Inject()]

    def make_printer(context) -> FilePrinter:
        return FilePrinter()

    container.register_bean_factory("printer", Scope.SINGLETON, make_printer)
    container.register_bean("service", Service)
    container.initialize()

    assert isinstance(container.get_instance("service").printer, FilePrinter)


def test_no_candidate_by_type_fails_unless_optional(container):
    class Required:
        printer: Annotated[Printer, Inject()]

    class Tolerant:
        printer: Annotated[Optional[Printer], Inject(optional=True)]

    container.register_bean("tolerant", Tolerant)
    container.register_bean("required", Required)

    with pytest.raises(MissingDependencyError, match="requires a bean of type Printer"):
        container.initialize()

    container.reset()
    container.register_bean("tolerant", Tolerant)
    container.initialize()
    assert container.get_instance("tolerant").printer is None


@pytest.mark.parametrize("optional", [False, True])
def test_multiple_candidates_by_type_always_fail(container, optional):
    class Service:
        printer: Annotated[Printer, Inject(optional=optional)]

    container.register_bean("console", ConsolePrinter)
    container.register_bean("file", FilePrinter)
    container.register_bean("service", Service)

    with pytest.raises(AmbiguousDependencyError, match="multiple candidates"):
        container.initialize()


def test_inject_list_of_all_candidates(container):
    class Service:
        printers: Annotated[list[Printer], Inject()]

    container.register_bean("console", ConsolePrinter)
    container.register_bean("file", FilePrinter)
    container.register_bean("service", Service)
    container.initialize()

    printers = container.get_instance("service").printers
    assert len(printers) == 2
    assert container.get_instance("console") in printers
    assert container.get_instance("file") in printers


def test_inject_map_of_all_candidates(container):
    class Service:
        printers: Annotated[dict[str, Printer], Inject()]

    container.register_bean("console", ConsolePrinter)
    container.register_bean("file", FilePrinter)
    container.register_bean("service", Service)
    container.initialize()

    assert container.get_instance("service").printers == {
        "console": container.get_instance("console"),
        "file": container.get_instance("file"),
    }


def test_empty_collections_without_candidates(container):
    class Service:
        printers: Annotated[list[Printer], Inject()]
        by_name: Annotated[dict[str, Printer], Inject()]
        maybe_printers: Annotated[list[Printer], Inject(optional=True)]
        maybe_by_name: Annotated[dict[str, Printer], Inject(optional=True)]

    container.register_bean("service", Service)
    container.initialize()

    service = container.get_instance("service")
    assert service.printers == []
    assert service.by_name == {}
    assert service.maybe_printers is None
    assert service.maybe_by_name is None


def test_list_with_explicit_id_holds_that_bean(container):
    class Service:
        printers: Annotated[list[Printer], Inject("console")]

    container.register_bean("console", ConsolePrinter)
    container.register_bean("file", FilePrinter)
    container.register_bean("service", Service)
    container.initialize()

    assert container.get_instance("service").printers == [container.get_instance("console")]


def test_request_bean_cant_be_injected_by_id(container):
    class RequestBean:
        __bean_scope__ = "request"

    class Service:
        request: Annotated[RequestBean, Inject("request")]

    container.register_bean("request", RequestBean)
    container.register_bean("service", Service)

    with pytest.raises(ScopeError, match="request-scoped beans can't be injected"):
        container.initialize()


def test_request_bean_cant_be_injected_by_type(container):
    class RequestPrinter(Printer):
        __bean_scope__ = "request"

    class Service:
        printers: Annotated[list[Printer], Inject()]

    container.register_bean("console", ConsolePrinter)
    container.register_bean("request", RequestPrinter)
    container.register_bean("service", Service)

    with pytest.raises(ScopeError, match="request-scoped beans can't be injected"):
        container.initialize()


class Node:
    __bean_scope__ = "prototype"
    next: Annotated["Node", Inject("node")]


class Left:
    __bean_scope__ = "prototype"
    right: Annotated["Right", Inject("right")]


class Right:
    __bean_scope__ = "prototype"
    left: Annotated[Left, Inject("left")]


class SelfReference:
    self_ref: Annotated["SelfReference", Inject("node")]


def test_direct_prototype_cycle_is_detected(container):
    container.register_bean("node", Node)
    container.initialize()

    with pytest.raises(CircularDependencyError, match="circular dependency detected for bean: node"):
        container.get_instance("node")


def test_indirect_prototype_cycle_is_detected(container):
    container.register_bean("left", Left)
    container.register_bean("right", Right)
    container.initialize()

    instance, error = container.get_instance_safe("left")
    assert instance is None
    assert isinstance(error, CircularDependencyError)
    assert error.bean_id == "left"


def test_singleton_with_prototype_cycle_fails_initialization(container):
    class Owner:
        node: Annotated[Node, Inject("node")]

    container.register_bean("node", Node)
    container.register_bean("owner", Owner)

    with pytest.raises(CircularDependencyError, match="node"):
        container.initialize()
    assert not container.is_initialized


def test_singleton_self_reference_is_allowed(container):
    container.register_bean("node", SelfReference)
    container.initialize()

    node = container.get_instance("node")
    assert node.self_ref is node


def test_repeated_prototype_siblings_are_not_a_cycle(container):
    class Service:
        __bean_scope__ = "prototype"
        first: Annotated[Formatter, Inject("formatter")]
        second: Annotated[Formatter, Inject("formatter")]

    container.register_bean_factory("formatter", Scope.PROTOTYPE, lambda ctx: Formatter())
    container.register_bean("service", Service)
    container.initialize()

    service = container.get_instance("service")
    assert service.first is not service.second


@pytest.mark.parametrize("tolerance", [0, 1, 2])
def test_cycle_tolerance_sets_how_often_a_bean_may_reenter(tolerance):
    built = []

    class Recursive:
        __bean_scope__ = "prototype"
        inner: Annotated[object, Inject("recursive")]

        def __init__(self):
            built.append(self)

    container = Container(ContainerConfig(cycle_tolerance=tolerance))
    container.register_bean("recursive", Recursive)
    container.initialize()

    with pytest.raises(CircularDependencyError, match="recursive"):
        container.get_instance("recursive")
    # the outermost instance plus one per tolerated re-entry
    assert len(built) == tolerance + 1


def test_frozen_bean_is_reported_as_creation_error(container):
    @dataclass(frozen=True)
    class Frozen:
        __bean_scope__ = "prototype"
        formatter: Annotated[Optional[Formatter], Inject("formatter")] = None

    container.register_bean("formatter", Formatter)
    container.register_bean("frozen", Frozen)
    container.initialize()

    instance, error = container.get_instance_safe("frozen")

    assert instance is None
    assert isinstance(error, BeanCreationError)
    assert error.bean_id == "frozen"
    assert "can't inject frozen.formatter" in str(error)


def test_read_only_attribute_aborts_initialization(container):
    class Service:
        printer: Annotated[Printer, Inject("printer")]

    Service.printer = property(lambda self: None)

    container.register_bean("printer", ConsolePrinter)
    container.register_bean("service", Service)

    with pytest.raises(BeanCreationError, match="can't inject service.printer"):
        container.initialize()
    assert not container.is_initialized


def test_dependency_unregistered_mid_resolution_is_not_found():
    registry = BeanRegistry()
    resolver = DependencyResolver(registry, BeanBuilder(registry))

    def make_console(context) -> ConsolePrinter:
        registry.clear()
        return ConsolePrinter()

    class Service:
        printers: Annotated[list[Printer], Inject()]

    registry.register_factory("console", Scope.PROTOTYPE, make_console)
    registry.register_type("file", FilePrinter)
    registry.register_type("service", Service)
    descriptor = registry.get("service")

    with pytest.raises(BeanNotFoundError, match="no bean registered with id: file"):
        resolver.inject(background_context(), descriptor, Service(), resolver.new_chain())


def test_resolution_chain_counts_active_ids():
    chain = ResolutionChain()

    with chain.entering("a"):
        assert "a" in chain
        with pytest.raises(CircularDependencyError):
            with chain.entering("a"):
                pass
    assert "a" not in chain

    with chain.entering("a"):
        pass


def test_resolution_chain_tolerance():
    chain = ResolutionChain(tolerance=1)

    with chain.entering("a"):
        with chain.entering("a"):
            with pytest.raises(CircularDependencyError):
                with chain.entering("a"):
                    pass
