"""
Service Registry - Dependency Injection Container for the favorites app
"""

import logging
import inspect
from abc import ABC, ABCMeta
from typing import TypeVar, Type, Dict, Any, Optional, Callable, Union, Set, get_args, get_origin
from enum import Enum
from dataclasses import dataclass
from threading import RLock

logger = logging.getLogger('favorites.core.service_registry')

T = TypeVar('T')

class ServiceLifetime(Enum):
    """Service lifetime management options"""
    SINGLETON = "singleton"
    TRANSIENT = "transient"

class ServiceNotFound(Exception):
    """Raised when a requested service is not registered"""
    pass

class CircularDependencyError(Exception):
    """Raised when circular dependencies are detected"""
    pass

class ServiceConfigurationError(Exception):
    """Raised when service configuration is invalid"""
    pass

@dataclass
class ServiceDefinition:
    """Metadata for a registered service"""
    interface_type: Type
    implementation_type: Optional[Type]
    lifetime: ServiceLifetime
    factory: Optional[Callable] = None
    instance: Optional[Any] = None
    dependencies: Optional[Set[Type]] = None

class ServiceRegistry:
    """
    Dependency injection container for managing service instances.

    Constructor and factory parameters are resolved from their type
    annotations, so a service only has to declare what it needs.

    Usage:
        registry = ServiceRegistry()
        registry.register(SettingsStore, factory=make_store)
        registry.register(FavoritesService)
        service = registry.get(FavoritesService)
    """

    def __init__(self):
        self._services: Dict[Type, ServiceDefinition] = {}
        self._resolving: Set[Type] = set()  # Circular dependency detection
        self._lock = RLock()
        logger.debug("ServiceRegistry initialized")

    def register(
        self,
        interface_type: Type[T],
        implementation_type: Optional[Type[T]] = None,
        lifetime: ServiceLifetime = ServiceLifetime.SINGLETON,
        factory: Optional[Callable[..., T]] = None
    ) -> 'ServiceRegistry':
        """
        Register a service with the container.

        Args:
            interface_type: The interface/abstract type to register
            implementation_type: The concrete implementation (if not using factory)
            lifetime: Service lifetime management
            factory: Optional factory function for complex construction

        Returns:
            Self for method chaining

        Raises:
            ServiceConfigurationError: If registration parameters are invalid
        """
        with self._lock:
            if implementation_type is None and factory is None:
                # Allow self-registration for concrete classes
                if not self._is_abstract(interface_type):
                    implementation_type = interface_type
                else:
                    raise ServiceConfigurationError(
                        f"Must provide implementation_type or factory for abstract type {interface_type}"
                    )

            if implementation_type and factory:
                raise ServiceConfigurationError(
                    "Cannot specify both implementation_type and factory"
                )

            if implementation_type and interface_type != implementation_type:
                if not issubclass(implementation_type, interface_type):
                    raise ServiceConfigurationError(
                        f"{implementation_type} does not implement {interface_type}"
                    )

            target_for_analysis = implementation_type or factory
            dependencies = self._analyze_dependencies(target_for_analysis) if target_for_analysis else set()

            self._services[interface_type] = ServiceDefinition(
                interface_type=interface_type,
                implementation_type=implementation_type,
                lifetime=lifetime,
                factory=factory,
                dependencies=dependencies
            )

            target_name = "factory" if factory else (implementation_type.__name__ if implementation_type else "unknown")
            logger.debug(
                f"Registered service: {interface_type.__name__} -> "
                f"{target_name} ({lifetime.value})"
            )

            return self

    def register_instance(self, interface_type: Type[T], instance: T) -> 'ServiceRegistry':
        """
        Register a pre-created instance as a singleton service.

        Args:
            interface_type: The interface type
            instance: The pre-created instance

        Returns:
            Self for method chaining
        """
        with self._lock:
            self._services[interface_type] = ServiceDefinition(
                interface_type=interface_type,
                implementation_type=type(instance),
                lifetime=ServiceLifetime.SINGLETON,
                instance=instance
            )

            logger.debug(f"Registered instance: {interface_type.__name__}")
            return self

    def get(self, interface_type: Type[T]) -> T:
        """
        Resolve a service instance from the container.

        Raises:
            ServiceNotFound: If service is not registered
            CircularDependencyError: If circular dependencies detected
        """
        with self._lock:
            return self._resolve_service(interface_type)

    def get_optional(self, interface_type: Type[T]) -> Optional[T]:
        """Resolve a service instance, returning None if not registered."""
        try:
            return self.get(interface_type)
        except ServiceNotFound:
            return None

    def is_registered(self, interface_type: Type[T]) -> bool:
        """Check if a service is registered."""
        return interface_type in self._services

    def get_registered_services(self) -> Dict[Type, ServiceDefinition]:
        """Get all registered services (for debugging/monitoring)"""
        return self._services.copy()

    def _resolve_service(self, interface_type: Type[T]) -> T:
        """Internal service resolution with circular dependency detection"""

        if interface_type in self._resolving:
            dependency_chain = " -> ".join([t.__name__ for t in self._resolving])
            raise CircularDependencyError(
                f"Circular dependency detected: {dependency_chain} -> {interface_type.__name__}"
            )

        if interface_type not in self._services:
            raise ServiceNotFound(f"Service {getattr(interface_type, '__name__', interface_type)} is not registered")

        service_def = self._services[interface_type]

        if (service_def.lifetime == ServiceLifetime.SINGLETON and
            service_def.instance is not None):
            return service_def.instance

        self._resolving.add(interface_type)

        try:
            if service_def.factory:
                instance = self._create_from_factory(service_def)
            else:
                instance = self._create_from_type(service_def)

            if service_def.lifetime == ServiceLifetime.SINGLETON:
                service_def.instance = instance

            logger.debug(f"Resolved service: {interface_type.__name__}")
            return instance

        finally:
            self._resolving.discard(interface_type)

    def _create_from_factory(self, service_def: ServiceDefinition):
        """Create instance using factory function"""
        if service_def.factory is None:
            raise ServiceConfigurationError("Factory is None")

        return service_def.factory(**self._resolve_parameters(service_def.factory))

    def _create_from_type(self, service_def: ServiceDefinition):
        """Create instance from implementation type"""
        if service_def.implementation_type is None:
            raise ServiceConfigurationError("Implementation type is None")

        constructor = service_def.implementation_type.__init__
        return service_def.implementation_type(**self._resolve_parameters(constructor))

    def _resolve_parameters(self, target: Callable) -> Dict[str, Any]:
        """Resolve annotated parameters of a constructor or factory"""
        kwargs = {}

        for param_name, param in inspect.signature(target).parameters.items():
            if param_name == 'self' or param.annotation == inspect.Parameter.empty:
                continue

            annotation = self._unwrap_optional(param.annotation)

            # Optional dependencies fall back to their default
            if param.default != inspect.Parameter.empty:
                if annotation in self._services:
                    kwargs[param_name] = self._resolve_service(annotation)
            else:
                kwargs[param_name] = self._resolve_service(annotation)

        return kwargs

    @staticmethod
    def _unwrap_optional(annotation: Any) -> Any:
        """Map Optional[X] to X so optional dependencies resolve by type"""
        if get_origin(annotation) is Union:
            args = [arg for arg in get_args(annotation) if arg is not type(None)]
            if len(args) == 1:
                return args[0]
        return annotation

    def _analyze_dependencies(self, target: Union[Type, Callable]) -> Set[Type]:
        """Analyze dependencies from constructor or factory signature"""
        dependencies = set()

        try:
            if inspect.isclass(target):
                sig = inspect.signature(target.__init__)
            else:
                sig = inspect.signature(target)

            for param_name, param in sig.parameters.items():
                if param_name == 'self':
                    continue

                if param.annotation != inspect.Parameter.empty:
                    dependencies.add(param.annotation)

        except (ValueError, TypeError) as e:
            logger.warning(f"Could not analyze dependencies for {target}: {e}")

        return dependencies

    def _is_abstract(self, cls: Type) -> bool:
        """Check if a class is abstract"""
        return (inspect.isabstract(cls) or
                isinstance(cls, ABCMeta) or
                issubclass(cls, ABC))
