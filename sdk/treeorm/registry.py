"""
Model registry for the treeorm SDK.

This module provides a process-wide registry of model classes for:
- Resolving relation targets declared by class name
- Looking up models by class name or model name

The registry only holds type metadata. Record instances always live in
a Store's identity map, never here.

Example:
    >>> from treeorm import get_registry
    >>> get_registry().get_model("Blog")
    <class 'Blog'>
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from typing import Type, TYPE_CHECKING

if TYPE_CHECKING:
    from .model import Model

logger = logging.getLogger(__name__)

# Global registry
_global_registry: ModelRegistry | None = None
_registry_lock = threading.Lock()


class ModelRegistry:
    """Registry of model classes.

    Model subclasses register themselves when they are defined. A later
    class with the same name replaces the earlier one.

    Example:
        >>> registry = ModelRegistry()
        >>> registry.register_model(Blog)
        >>> registry.get_model("blog") is Blog
        True
    """

    def __init__(self) -> None:
        """Initialize empty registry."""
        self._by_class_name: dict[str, Type[Model]] = {}
        self._by_model_name: dict[str, Type[Model]] = {}
        self._lock = threading.Lock()

    def register_model(self, model_class: Type[Model]) -> None:
        """Register a model class under its class name and model name."""
        with self._lock:
            class_name = model_class.__name__
            existing = self._by_class_name.get(class_name)
            if existing is not None and existing is not model_class:
                logger.warning(
                    f"Model class name '{class_name}' re-registered, "
                    f"replacing {existing.__module__}.{class_name}"
                )
            self._by_class_name[class_name] = model_class
            if model_class.model_name:
                self._by_model_name[model_class.model_name] = model_class

    def get_model(self, name: str) -> Type[Model] | None:
        """Get model class by class name, falling back to model name."""
        return self._by_class_name.get(name) or self._by_model_name.get(name)

    def models(self) -> Iterator[Type[Model]]:
        """Iterate over all registered model classes."""
        yield from self._by_class_name.values()


def get_registry() -> ModelRegistry:
    """Get the global model registry."""
    global _global_registry
    with _registry_lock:
        if _global_registry is None:
            _global_registry = ModelRegistry()
        return _global_registry


def register_model(model_class: Type[Model]) -> None:
    """Register a model class in the global registry."""
    get_registry().register_model(model_class)


def reset_registry() -> None:
    """Reset the global registry (for testing only)."""
    global _global_registry
    with _registry_lock:
        _global_registry = None
