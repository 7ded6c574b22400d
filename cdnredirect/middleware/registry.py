"""Registry of storage middleware factories by name."""

from collections.abc import Callable, Mapping
from threading import Lock
from typing import Any

import structlog

from cdnredirect.errors import CdnRedirectError
from cdnredirect.middleware.cloudfront import new_cloudfront_middleware
from cdnredirect.middleware.driver import StorageDriver


logger = structlog.get_logger()

MiddlewareFactory = Callable[[StorageDriver, Mapping[str, Any]], Any]

# Module-level singleton state
_registry_instance: "MiddlewareRegistry | None" = None
_registry_lock: Lock = Lock()


class MiddlewareRegistrationError(CdnRedirectError):
    """Raised on duplicate registrations and unknown middleware names."""


class MiddlewareRegistry:
    """Thread-safe registry of storage middleware factories.

    Use get_instance() for singleton access; the shared instance comes with
    the built-in "cloudfront" middleware registered.
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._factories: dict[str, MiddlewareFactory] = {}
        self._lock = Lock()
        self._log = logger.bind(component="registry")

    @classmethod
    def get_instance(cls) -> "MiddlewareRegistry":
        """Get the singleton instance (thread-safe).

        Returns:
            The shared MiddlewareRegistry instance.
        """
        global _registry_instance  # noqa: PLW0603
        if _registry_instance is None:
            with _registry_lock:
                if _registry_instance is None:
                    registry = cls()
                    registry.register("cloudfront", new_cloudfront_middleware)
                    _registry_instance = registry
        return _registry_instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance (for testing)."""
        global _registry_instance  # noqa: PLW0603
        with _registry_lock:
            _registry_instance = None

    def register(self, name: str, factory: MiddlewareFactory) -> None:
        """Register a middleware factory.

        Args:
            name: Middleware name used in configuration.
            factory: Callable building the middleware from a driver and options.

        Raises:
            MiddlewareRegistrationError: If the name is already registered.
        """
        with self._lock:
            if name in self._factories:
                msg = f"storage middleware {name!r} already registered"
                raise MiddlewareRegistrationError(msg)
            self._factories[name] = factory
        self._log.debug("middleware_registered", name=name)

    def get(self, name: str) -> MiddlewareFactory:
        """Get a registered factory.

        Args:
            name: Middleware name.

        Returns:
            The factory.

        Raises:
            MiddlewareRegistrationError: If no such middleware is registered.
        """
        with self._lock:
            factory = self._factories.get(name)
        if factory is None:
            msg = f"storage middleware {name!r} not registered"
            raise MiddlewareRegistrationError(msg)
        return factory

    def create(
        self, name: str, driver: StorageDriver, options: Mapping[str, Any]
    ) -> Any:
        """Build a middleware around a driver.

        Args:
            name: Middleware name.
            driver: Storage driver to wrap.
            options: Raw option map.

        Returns:
            The middleware-wrapped driver.
        """
        return self.get(name)(driver, options)

    def names(self) -> list[str]:
        """List registered middleware names."""
        with self._lock:
            return sorted(self._factories)


def register(name: str, factory: MiddlewareFactory) -> None:
    """Register a factory on the shared registry."""
    MiddlewareRegistry.get_instance().register(name, factory)


def create(name: str, driver: StorageDriver, options: Mapping[str, Any]) -> Any:
    """Build a middleware from the shared registry."""
    return MiddlewareRegistry.get_instance().create(name, driver, options)
