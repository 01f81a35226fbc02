"""Self-registering provider registry.

Providers register themselves via the @register_provider decorator, one class
per ProviderKind. Call discover_providers() once at startup to import all
provider modules, then missing_providers() to check every kind is covered.
"""

import importlib
import pkgutil
import sys
from typing import Dict, Type

from ..models import ProviderKind
from .base import BaseProvider

_REGISTRY: Dict[ProviderKind, Type[BaseProvider]] = {}

_NOT_PROVIDERS = ("base", "registry", "response", "__init__")


def register_provider(kind: ProviderKind):
    """Decorator that registers a provider class for the given kind.

    Usage:
        @register_provider(ProviderKind.GEMINI)
        class GeminiProvider(BaseProvider):
            ...
    """
    def decorator(cls: Type[BaseProvider]):
        if not issubclass(cls, BaseProvider):
            raise TypeError(f"{cls.__name__} must be a subclass of BaseProvider")
        cls.kind = kind
        _REGISTRY[kind] = cls
        return cls
    return decorator


def discover_providers() -> None:
    """Import all modules in the providers package to trigger @register_provider.

    Already-imported modules are reloaded so the decorators re-execute after
    clear_registry(). Does nothing once every kind is registered.
    """
    if not missing_providers():
        return
    package = importlib.import_module("switchboard.providers")
    for _importer, module_name, _is_pkg in pkgutil.iter_modules(package.__path__):
        if module_name in _NOT_PROVIDERS or module_name.startswith("_"):
            continue
        fqn = f"switchboard.providers.{module_name}"
        if fqn in sys.modules:
            importlib.reload(sys.modules[fqn])
        else:
            importlib.import_module(fqn)


def get_registry() -> Dict[ProviderKind, Type[BaseProvider]]:
    """Return a copy of the registry (kind -> class)."""
    return dict(_REGISTRY)


def missing_providers() -> list[ProviderKind]:
    """Kinds that have no registered implementation."""
    return [kind for kind in ProviderKind if kind not in _REGISTRY]


def clear_registry() -> None:
    """Clear the registry. Primarily for testing."""
    _REGISTRY.clear()
