"""Object store adapters."""

from .base import ObjectStore, ResourceKind
from .memory import InMemoryObjectStore

__all__ = ["ObjectStore", "ResourceKind", "InMemoryObjectStore"]
