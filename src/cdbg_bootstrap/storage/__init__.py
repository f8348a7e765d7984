"""Storage backends for agent archives."""

from .base import ObjectStore
from .gcs import GcsObjectStore
from .memory import InMemoryObjectStore

__all__ = ["ObjectStore", "GcsObjectStore", "InMemoryObjectStore"]
