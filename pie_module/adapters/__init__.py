"""Adapters — bindings for the external tools and the device host."""

from pie_module.adapters.base import Adapter, ExecutionContext
from pie_module.adapters.mock import MockAdapter
from pie_module.adapters.registry import AdapterRegistry, default_registry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
    "default_registry",
]
