"""
In-memory resource store for development and testing.
"""

from collections import defaultdict
from typing import Any, Dict, List, Optional
import asyncio
import logging

from ..core.types import ResourceInstance
from ..errors import NotFoundError
from ..registry import ResourceTypeDescriptor
from .types import ResourceStore


logger = logging.getLogger(__name__)


def normalize_targets(value: Any) -> List[int]:
    """Relationship values may be given as None, one identifier, or a sequence."""
    if value is None:
        return []
    if isinstance(value, int) and not isinstance(value, bool):
        return [value]
    if isinstance(value, (list, tuple)):
        return [int(target) for target in value]
    raise ValueError(f"Invalid relationship value: {value!r}")


class MemoryResourceStore(ResourceStore):
    """In-memory resource store keyed by resource path and identifier"""

    def __init__(self):
        self._instances: Dict[str, Dict[int, ResourceInstance]] = defaultdict(dict)
        self._descriptors: Dict[str, ResourceTypeDescriptor] = {}
        self._next_id: Dict[str, int] = defaultdict(lambda: 1)
        self._lock = asyncio.Lock()

    async def fetch(self, descriptor: ResourceTypeDescriptor,
                    identifier: int) -> Optional[ResourceInstance]:
        async with self._lock:
            stored = self._instances[descriptor.path].get(identifier)
            return stored.snapshot() if stored else None

    async def create(self, descriptor: ResourceTypeDescriptor,
                     fields: Dict[str, Any]) -> ResourceInstance:
        async with self._lock:
            identifier = self._next_id[descriptor.path]
            instance = self._build(descriptor, identifier, fields)
            self._store(descriptor, instance)
            logger.debug(f"Created {descriptor.path}/{identifier}")
            return instance.snapshot()

    async def insert(self, descriptor: ResourceTypeDescriptor, identifier: int,
                     fields: Optional[Dict[str, Any]] = None) -> ResourceInstance:
        """Store an instance under a chosen identifier, replacing any existing one"""
        async with self._lock:
            instance = self._build(descriptor, identifier, fields or {})
            self._store(descriptor, instance)
            return instance.snapshot()

    async def apply_write(self, instance: ResourceInstance, fields: Dict[str, Any]) -> None:
        async with self._lock:
            stored = self._require(instance)
            descriptor = self._descriptors[instance.resource_path]
            for name, value in fields.items():
                if name in descriptor.relationships:
                    stored.relationships[name] = normalize_targets(value)
                else:
                    stored.attributes[name] = value

    async def resolve_relationship_targets(self, instance: ResourceInstance,
                                           relationship: str) -> List[int]:
        async with self._lock:
            stored = self._require(instance)
            return list(stored.relationships.get(relationship, []))

    async def delete(self, instance: ResourceInstance) -> None:
        async with self._lock:
            self._require(instance)
            del self._instances[instance.resource_path][instance.identifier]
            logger.debug(f"Deleted {instance.resource_path}/{instance.identifier}")

    async def count(self, descriptor: ResourceTypeDescriptor) -> int:
        async with self._lock:
            return len(self._instances[descriptor.path])

    def _build(self, descriptor: ResourceTypeDescriptor, identifier: int,
               fields: Dict[str, Any]) -> ResourceInstance:
        attributes = {name: None for name in descriptor.attributes}
        relationships = {name: [] for name in descriptor.relationships}
        for name, value in fields.items():
            if name in descriptor.relationships:
                relationships[name] = normalize_targets(value)
            elif name in descriptor.attributes:
                attributes[name] = value
            else:
                raise ValueError(f"'{name}' is not a field of {descriptor.path}")
        attributes[descriptor.identifier_key] = identifier
        return ResourceInstance(
            resource_path=descriptor.path,
            identifier=identifier,
            attributes=attributes,
            relationships=relationships
        )

    def _store(self, descriptor: ResourceTypeDescriptor, instance: ResourceInstance) -> None:
        self._descriptors[descriptor.path] = descriptor
        self._instances[descriptor.path][instance.identifier] = instance
        self._next_id[descriptor.path] = max(self._next_id[descriptor.path], instance.identifier + 1)

    def _require(self, instance: ResourceInstance) -> ResourceInstance:
        stored = self._instances[instance.resource_path].get(instance.identifier)
        if stored is None:
            raise NotFoundError()
        return stored
