"""Process-wide object registry.

Callers that want an implicit, shared ``DatabaseManager`` resolve it from
here (see ``shared_manager()``); everything else receives its collaborators
explicitly. A registration is either a ready instance or a factory that is
called with the container on first resolve. Built objects are remembered in
build order so ``dispose()`` can close them newest first: a manager built
from a registered ``Config`` is closed before anything it was built from.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from sqlite_access.infrastructure.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)

_UNBUILT = object()


@dataclass
class _Registration:
    factory: Callable[[Container], Any] | None
    instance: Any = _UNBUILT
    lock: threading.Lock = field(default_factory=threading.Lock)

    @property
    def built(self) -> bool:
        return self.instance is not _UNBUILT


class Container:
    """Registry of singletons and lazily built objects, keyed by type.

    Thread Safety:
        Registration and lookup are guarded by one lock. A factory runs under
        its own registration's lock only, so concurrent first resolves build
        exactly one instance while a factory may itself resolve other types.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._registrations: dict[type, _Registration] = {}
        self._build_order: list[type] = []

    def register_singleton(self, interface: type[T], instance: T) -> None:
        """Register an already constructed ``instance`` for ``interface``."""
        with self._lock:
            self._registrations[interface] = _Registration(factory=None, instance=instance)
            self._build_order.append(interface)

    def register_factory(self, interface: type[T], factory: Callable[[Container], T]) -> None:
        """Register ``factory``; it is called with the container on first resolve."""
        with self._lock:
            self._registrations[interface] = _Registration(factory=factory)

    def resolve(self, interface: type[T]) -> T:
        """Return the instance for ``interface``, building it if needed.

        Raises:
            KeyError: If ``interface`` was never registered.
        """
        with self._lock:
            registration = self._registrations.get(interface)
        if registration is None:
            raise KeyError(f"Nothing registered for {interface.__name__}")
        if registration.built:
            return registration.instance

        with registration.lock:
            if not registration.built:
                assert registration.factory is not None
                registration.instance = registration.factory(self)
                with self._lock:
                    self._build_order.append(interface)
                logger.debug("container_built", interface=interface.__name__)
        return registration.instance

    def has(self, interface: type) -> bool:
        """Check if ``interface`` has a registration (built or not)."""
        with self._lock:
            return interface in self._registrations

    def is_resolved(self, interface: type) -> bool:
        """Check if the instance for ``interface`` exists."""
        with self._lock:
            registration = self._registrations.get(interface)
            return registration is not None and registration.built

    def dispose(self) -> None:
        """Close built instances that have ``close()``, newest first.

        Singletons and factories are dropped as built instances; factory
        registrations stay and would build again.
        """
        with self._lock:
            order, self._build_order = self._build_order, []
            instances = []
            for interface in reversed(order):
                registration = self._registrations.get(interface)
                if registration is None or not registration.built:
                    continue
                instances.append((interface, registration.instance))
                if registration.factory is None:
                    del self._registrations[interface]
                else:
                    registration.instance = _UNBUILT

        for interface, instance in instances:
            close = getattr(instance, "close", None)
            if callable(close):
                logger.debug("container_dispose", interface=interface.__name__)
                close()

    def clear(self) -> None:
        """Forget every registration without closing anything."""
        with self._lock:
            self._registrations.clear()
            self._build_order.clear()


_container: Container | None = None
_container_lock = threading.Lock()


def get_container() -> Container:
    """Get the process-wide container, creating it on first use."""
    global _container
    with _container_lock:
        if _container is None:
            _container = Container()
        return _container


def reset_container() -> None:
    """Dispose the process-wide container and start afresh (tests)."""
    global _container
    with _container_lock:
        container, _container = _container, None
    if container is not None:
        container.dispose()
        container.clear()
