import abc

import pytest

from miniblog.container import ServiceCollection, ServiceProvider, ServiceResolutionError


class Greeter(abc.ABC):
    @abc.abstractmethod
    def greet(self) -> str:
        ...


class Clock:
    pass


class EnglishGreeter(Greeter):
    def __init__(self, clock: Clock):
        self.clock = clock

    def greet(self) -> str:
        return "hello"


class GermanGreeter(Greeter):
    def greet(self) -> str:
        return "hallo"


class Chicken:
    def __init__(self, egg: "Egg"):
        self.egg = egg


class Egg:
    def __init__(self, chicken: Chicken):
        self.chicken = chicken


class NeedsProvider:
    def __init__(self, provider: ServiceProvider, name: str = "default"):
        self.provider = provider
        self.name = name


def test_singletons_are_shared() -> None:
    provider = ServiceCollection().add_singleton(Clock).add_singleton(Greeter, EnglishGreeter).build_provider()

    greeter = provider.get_required(Greeter)

    assert greeter is provider.get_required(Greeter)
    assert greeter.clock is provider.get_required(Clock)


def test_try_add_keeps_existing_registration() -> None:
    services = ServiceCollection().add_singleton(Greeter, GermanGreeter)
    services.try_add_singleton(Greeter, EnglishGreeter)

    assert services.build_provider().get_required(Greeter).greet() == "hallo"


def test_add_replaces_registration() -> None:
    services = ServiceCollection().add_singleton(Clock).add_singleton(Greeter, EnglishGreeter)
    services.add_singleton(Greeter, GermanGreeter)

    assert len(services) == 2
    assert services.build_provider().get_required(Greeter).greet() == "hallo"


def test_factory_instance_and_configure() -> None:
    clock = Clock()
    services = ServiceCollection()
    services.add_singleton(Clock, instance=clock)
    services.add_singleton(Greeter, factory=lambda p: GermanGreeter())
    services.configure(dict, lambda: {"posts_per_page": 2})
    provider = services.build_provider()

    assert provider.get_required(Clock) is clock
    assert isinstance(provider.get_required(Greeter), GermanGreeter)
    assert provider.get_required(dict) == {"posts_per_page": 2}


def test_unregistered_service() -> None:
    provider = ServiceCollection().build_provider()

    assert provider.get(Clock) is None
    with pytest.raises(ServiceResolutionError):
        provider.get_required(Clock)


def test_missing_constructor_dependency() -> None:
    provider = ServiceCollection().add_singleton(Greeter, EnglishGreeter).build_provider()

    with pytest.raises(ServiceResolutionError, match="clock"):
        provider.get_required(Greeter)


def test_circular_dependency_is_reported() -> None:
    provider = ServiceCollection().add_singleton(Chicken).add_singleton(Egg).build_provider()

    with pytest.raises(ServiceResolutionError, match="Circular dependency"):
        provider.get_required(Chicken)


def test_implementation_must_implement_service() -> None:
    with pytest.raises(TypeError):
        ServiceCollection().add_singleton(Greeter, Clock)
    with pytest.raises(ValueError):
        ServiceCollection().add_singleton(Clock, Clock, instance=Clock())


def test_create_instance_for_unregistered_type() -> None:
    provider = ServiceCollection().build_provider()

    created = provider.create_instance(NeedsProvider)

    assert created.provider is provider
    assert created.name == "default"
