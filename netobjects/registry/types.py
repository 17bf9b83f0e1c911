# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Resource type descriptors.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Tuple

from ..errors import InvalidDescriptorError


@dataclass(frozen=True)
class ResourceTypeDescriptor:
    """
    Static description of one entity type exposed over the API.

    ``identifier_key`` names the integer attribute identifying instances; it
    must be one of ``attributes`` and can never be written through the API.
    """
    path: str
    requires_session: bool
    identifier_key: str
    function_names: FrozenSet[str] = field(default_factory=frozenset)
    attributes: FrozenSet[str] = field(default_factory=frozenset)
    relationships: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        # Accept any iterable for the name sets but store them frozen
        for name in ('function_names', 'attributes', 'relationships'):
            object.__setattr__(self, name, frozenset(getattr(self, name)))

        if not self.path or not isinstance(self.path, str):
            raise InvalidDescriptorError("Resource path must be a non-empty string")
        if self.identifier_key not in self.attributes:
            raise InvalidDescriptorError(
                f"Identifier key '{self.identifier_key}' is not an attribute of '{self.path}'"
            )

        overlap = self.attributes & self.relationships
        if overlap:
            raise InvalidDescriptorError(
                f"Names used as both attribute and relationship on '{self.path}': "
                f"{', '.join(sorted(overlap))}"
            )

    @property
    def fields(self) -> FrozenSet[str]:
        """All attribute and relationship names."""
        return self.attributes | self.relationships

    def unknown_fields(self, names: Iterable[str]) -> List[str]:
        """Names that are neither a declared attribute nor a relationship."""
        known = self.fields
        return sorted({name for name in names if name not in known})

    def split_fields(self, names: Iterable[str]) -> Tuple[List[str], List[str]]:
        """Partition known names into (attributes, relationships), keeping order."""
        attributes, relationships = [], []
        for name in names:
            if name in self.attributes:
                attributes.append(name)
            elif name in self.relationships:
                relationships.append(name)
        return attributes, relationships

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            'path': self.path,
            'requires_session': self.requires_session,
            'identifier_key': self.identifier_key,
            'function_names': sorted(self.function_names),
            'attributes': sorted(self.attributes),
            'relationships': sorted(self.relationships),
        }
