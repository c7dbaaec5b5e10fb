"""
Composition root for wiring services.

Services are registered against a capability type (usually an abstract base
class) and resolved through a `ServiceProvider`. Every registration here is a
singleton: one instance per provider, created lazily on first resolution.
Constructor dependencies are resolved from the type hints of `__init__`.
"""

import inspect
import logging
import threading
import typing
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")


class ServiceResolutionError(LookupError):
    """Raised when a service cannot be constructed from the registrations."""


@dataclass
class ServiceDescriptor:
    service_type: type
    implementation: Optional[type] = None
    factory: Optional[Callable[["ServiceProvider"], Any]] = None
    instance: Any = None


class ServiceCollection:
    """Ordered set of singleton registrations, built once at startup."""

    def __init__(self) -> None:
        self._descriptors: Dict[type, ServiceDescriptor] = {}

    def __contains__(self, service_type: type) -> bool:
        return service_type in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)

    def add_singleton(
        self,
        service_type: Type[T],
        implementation: Optional[type] = None,
        *,
        factory: Optional[Callable[["ServiceProvider"], T]] = None,
        instance: Optional[T] = None,
    ) -> "ServiceCollection":
        """
        Registers `service_type`, replacing any previous registration.

        Exactly one of `implementation`, `factory` or `instance` may be given;
        with none, `service_type` is its own implementation.
        """
        given = [x for x in (implementation, factory, instance) if x is not None]
        if len(given) > 1:
            raise ValueError("Pass only one of implementation, factory or instance.")
        if not given:
            implementation = service_type
        if implementation is not None and not issubclass(implementation, service_type):
            raise TypeError(f"{implementation.__name__} does not implement {service_type.__name__}")

        if service_type in self._descriptors:
            log.debug(f"Replacing registration for {service_type.__name__}")
        self._descriptors[service_type] = ServiceDescriptor(service_type, implementation, factory, instance)
        return self

    def try_add_singleton(self, service_type: Type[T], implementation: Optional[type] = None, **kwargs: Any) -> "ServiceCollection":
        """Registers `service_type` only if nothing is registered for it yet."""
        if service_type not in self._descriptors:
            self.add_singleton(service_type, implementation, **kwargs)
        return self

    def configure(self, options_type: Type[T], binder: Callable[[], T]) -> "ServiceCollection":
        """Registers a settings object produced by `binder` from configuration."""
        return self.add_singleton(options_type, factory=lambda _: binder())

    def descriptors(self) -> List[ServiceDescriptor]:
        return list(self._descriptors.values())

    def build_provider(self) -> "ServiceProvider":
        return ServiceProvider(dict(self._descriptors))


class ServiceProvider:
    """Resolves singletons from a frozen set of registrations. Thread-safe."""

    def __init__(self, descriptors: Dict[type, ServiceDescriptor]) -> None:
        self._descriptors = descriptors
        self._instances: Dict[type, Any] = {}
        self._lock = threading.RLock()
        self._resolving: List[type] = []

    def __contains__(self, service_type: type) -> bool:
        return service_type in self._descriptors

    def get(self, service_type: Type[T]) -> Optional[T]:
        """Returns the singleton for `service_type`, or None if it is not registered."""
        if service_type not in self._descriptors:
            return None
        return self.get_required(service_type)

    def get_required(self, service_type: Type[T]) -> T:
        """Returns the singleton for `service_type`, creating it on first use."""
        with self._lock:
            if service_type in self._instances:
                return self._instances[service_type]

            descriptor = self._descriptors.get(service_type)
            if descriptor is None:
                raise ServiceResolutionError(f"No service registered for {service_type.__name__}")
            if service_type in self._resolving:
                chain = " -> ".join(t.__name__ for t in self._resolving + [service_type])
                raise ServiceResolutionError(f"Circular dependency: {chain}")

            self._resolving.append(service_type)
            try:
                instance = self._create(descriptor)
            finally:
                self._resolving.pop()
            self._instances[service_type] = instance
            log.debug(f"Created singleton {type(instance).__name__} for {service_type.__name__}")
            return instance

    def _create(self, descriptor: ServiceDescriptor) -> Any:
        if descriptor.instance is not None:
            return descriptor.instance
        if descriptor.factory is not None:
            return descriptor.factory(self)
        return self.create_instance(descriptor.implementation)

    def create_instance(self, implementation: Type[T]) -> T:
        """
        Calls `implementation(...)`, resolving annotated parameters from the provider.

        Also used for types that are not registered themselves, such as controllers.
        """
        try:
            hints = typing.get_type_hints(implementation.__init__)
        except (NameError, TypeError):
            hints = {}

        kwargs = {}
        for name, param in inspect.signature(implementation.__init__).parameters.items():
            if name == "self" or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            dependency = hints.get(name)
            if dependency is ServiceProvider:
                kwargs[name] = self
            elif isinstance(dependency, type) and dependency in self._descriptors:
                kwargs[name] = self.get_required(dependency)
            elif param.default is inspect.Parameter.empty:
                raise ServiceResolutionError(
                    f"Cannot resolve parameter '{name}' of {implementation.__name__}"
                )
        return implementation(**kwargs)
