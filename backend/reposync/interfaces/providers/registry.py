"""Simple dependency injection container with provider registry support."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class ProviderRegistry(Generic[T]):
    """Maps provider keys (e.g., provisioner names) to lazily constructed instances."""

    factory_map: Dict[str, Callable[[], T]] = field(default_factory=dict)
    _cache: Dict[str, T] = field(default_factory=dict, init=False, repr=False)

    def register(self, key: str, factory: Callable[[], T]) -> None:
        if key in self.factory_map:
            raise ValueError(f"Provider '{key}' already registered")
        self.factory_map[key] = factory
        self._cache.pop(key, None)

    def override(self, key: str, factory: Callable[[], T]) -> None:
        """Replace a registration; tests use this to swap in stubs."""
        self.factory_map[key] = factory
        self._cache.pop(key, None)

    def resolve(self, key: str) -> T:
        if key in self._cache:
            return self._cache[key]
        try:
            factory = self.factory_map[key]
        except KeyError as exc:
            raise KeyError(f"Provider '{key}' not found") from exc
        instance = factory()
        self._cache[key] = instance
        return instance


@dataclass
class Container:
    """Minimal DI container orchestrating provider registries."""

    provisioners: ProviderRegistry[Any] = field(default_factory=ProviderRegistry)
    executors: ProviderRegistry[Any] = field(default_factory=ProviderRegistry)
    hosting: ProviderRegistry[Any] = field(default_factory=ProviderRegistry)

    def resolve_provisioner(self, key: Optional[str] = None) -> Any:
        target = key or self._default("PROVISIONER", "docker")
        return self.provisioners.resolve(target)

    def resolve_executor(self, key: Optional[str] = None) -> Any:
        target = key or self._default("WORKSPACE_EXECUTOR", "container")
        return self.executors.resolve(target)

    def resolve_hosting(self, key: Optional[str] = None) -> Any:
        target = key or self._default("HOSTING_PROVIDER", "github")
        return self.hosting.resolve(target)

    def _default(self, attr: str, fallback: str) -> str:
        from django.conf import settings
        from django.core.exceptions import ImproperlyConfigured

        try:
            return getattr(settings, attr, fallback)
        except ImproperlyConfigured:
            return fallback
