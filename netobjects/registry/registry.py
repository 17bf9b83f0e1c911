# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Resource type registry.

The registry is filled once at process start and frozen before serving
traffic. After that it is only read, so concurrent requests share it without
locking. It is always passed explicitly; there is no process-wide instance.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Mapping, Optional, Union
import logging

from ..authz.evaluator import PermissionEvaluator
from ..core.types import FunctionResult, Principal, ResourceInstance
from ..errors import (
    DuplicatePathError,
    InvalidDescriptorError,
    RegistryFrozenError,
    UnknownResourceError,
)
from .types import ResourceTypeDescriptor


logger = logging.getLogger(__name__)


HandlerReturn = Union[FunctionResult, int, tuple]

# handler(principal, instance, payload) -> FunctionResult, sync or async
FunctionHandler = Callable[
    [Principal, ResourceInstance, Dict[str, Any]],
    Union[HandlerReturn, Awaitable[HandlerReturn]]
]


@dataclass(frozen=True)
class ResourceType:
    """A descriptor bound to its evaluator and function handler table."""
    descriptor: ResourceTypeDescriptor
    evaluator: PermissionEvaluator
    handlers: Mapping[str, FunctionHandler] = field(default_factory=dict)


class ResourceTypeRegistry:
    """
    Catalog of resource types keyed by path.

    Example:
        registry = ResourceTypeRegistry()
        registry.register(post_descriptor, PostEvaluator(), {"like": like_post})
        registry.freeze()
        descriptor = registry.resolve("post")
    """

    def __init__(self):
        self._types: Dict[str, ResourceType] = {}
        self._frozen = False

    def register(
        self,
        descriptor: ResourceTypeDescriptor,
        evaluator: PermissionEvaluator,
        handlers: Optional[Mapping[str, FunctionHandler]] = None
    ) -> ResourceType:
        """
        Register a resource type with its evaluator and function handlers.

        Raises:
            RegistryFrozenError: If the registry has been frozen
            DuplicatePathError: If the path is already registered
            InvalidDescriptorError: If the handler table does not match the
                declared function names
        """
        if self._frozen:
            raise RegistryFrozenError(descriptor.path)

        if descriptor.path in self._types:
            raise DuplicatePathError(descriptor.path)

        if not isinstance(evaluator, PermissionEvaluator):
            raise InvalidDescriptorError(
                f"Evaluator for '{descriptor.path}' must be a PermissionEvaluator"
            )

        handlers = dict(handlers or {})
        missing = descriptor.function_names - set(handlers)
        extra = set(handlers) - descriptor.function_names
        if missing or extra:
            parts = []
            if missing:
                parts.append(f"no handler for {', '.join(sorted(missing))}")
            if extra:
                parts.append(f"undeclared handler(s) {', '.join(sorted(extra))}")
            raise InvalidDescriptorError(f"Resource type '{descriptor.path}': {'; '.join(parts)}")

        for name, handler in handlers.items():
            if not callable(handler):
                raise InvalidDescriptorError(
                    f"Handler for function '{name}' on '{descriptor.path}' is not callable"
                )

        resource_type = ResourceType(
            descriptor=descriptor,
            evaluator=evaluator,
            handlers=MappingProxyType(handlers)
        )
        self._types[descriptor.path] = resource_type

        logger.info(
            f"Registered resource type '{descriptor.path}' "
            f"(session={'required' if descriptor.requires_session else 'optional'}, "
            f"functions={sorted(descriptor.function_names)})"
        )
        return resource_type

    def freeze(self) -> None:
        """Stop accepting registrations."""
        if not self._frozen:
            self._frozen = True
            logger.info(f"Resource registry frozen with {len(self._types)} type(s)")

    @property
    def frozen(self) -> bool:
        return self._frozen

    def resolve(self, path: str) -> ResourceTypeDescriptor:
        """
        Look up the descriptor registered under ``path``.

        Raises:
            UnknownResourceError: If no type is registered under the path
        """
        return self._get(path).descriptor

    def evaluator_for(self, descriptor: ResourceTypeDescriptor) -> PermissionEvaluator:
        return self._get(descriptor.path).evaluator

    def handlers_for(self, descriptor: ResourceTypeDescriptor) -> Mapping[str, FunctionHandler]:
        return self._get(descriptor.path).handlers

    def descriptors(self) -> List[ResourceTypeDescriptor]:
        return [resource_type.descriptor for resource_type in self._types.values()]

    def paths(self) -> List[str]:
        return list(self._types)

    def _get(self, path: str) -> ResourceType:
        try:
            return self._types[path]
        except KeyError:
            raise UnknownResourceError(path) from None

    def __contains__(self, path: object) -> bool:
        return path in self._types

    def __len__(self) -> int:
        return len(self._types)

    def __iter__(self) -> Iterator[ResourceTypeDescriptor]:
        return iter(self.descriptors())
