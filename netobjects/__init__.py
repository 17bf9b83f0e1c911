"""
netobjects Python Package

Access control and function dispatch for typed resources exposed over a
network API.
"""

__version__ = "0.1.0"

from .core.config import Config
from .core.orchestrator import RequestOrchestrator
from .core.types import (
    User,
    Client,
    Principal,
    ResourceInstance,
    FunctionResult,
    Operation,
    ResourceRequest,
    ResourceResponse,
)
from .authz import PermissionEvaluator, AccessChecker, AccessDecision
from .dispatch import FunctionDispatcher
from .registry import ResourceTypeDescriptor, ResourceTypeRegistry
from .store import ResourceStore, MemoryResourceStore

__all__ = [
    "RequestOrchestrator",
    "Config",
    "User",
    "Client",
    "Principal",
    "ResourceInstance",
    "FunctionResult",
    "Operation",
    "ResourceRequest",
    "ResourceResponse",
    "PermissionEvaluator",
    "AccessChecker",
    "AccessDecision",
    "FunctionDispatcher",
    "ResourceTypeDescriptor",
    "ResourceTypeRegistry",
    "ResourceStore",
    "MemoryResourceStore",
]
