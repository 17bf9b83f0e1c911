"""
Persistence collaborator interface.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ..core.types import ResourceInstance
from ..registry import ResourceTypeDescriptor


class ResourceStore(ABC):
    """
    Abstract base class for resource persistence.

    The orchestrator treats every call as potentially slow and potentially
    failing; errors raised here reach the caller unchanged.
    """

    @abstractmethod
    async def fetch(self, descriptor: ResourceTypeDescriptor,
                    identifier: int) -> Optional[ResourceInstance]:
        """Return a snapshot of the instance, or None if it does not exist"""
        pass

    @abstractmethod
    async def create(self, descriptor: ResourceTypeDescriptor,
                     fields: Dict[str, Any]) -> ResourceInstance:
        """Create an instance with initial field values and assign its identifier"""
        pass

    @abstractmethod
    async def apply_write(self, instance: ResourceInstance, fields: Dict[str, Any]) -> None:
        """Apply a fully authorized write set to a stored instance"""
        pass

    @abstractmethod
    async def resolve_relationship_targets(self, instance: ResourceInstance,
                                           relationship: str) -> List[int]:
        """Return the ordered identifiers a relationship points to"""
        pass

    @abstractmethod
    async def delete(self, instance: ResourceInstance) -> None:
        """Remove a stored instance"""
        pass

    async def close(self) -> None:
        """Close the store and release resources"""
        pass
