"""
Core module initialization
"""

from .config import Config
from .types import (
    User,
    Client,
    Principal,
    ResourceInstance,
    FunctionResult,
    Operation,
    ResourceRequest,
    ResourceResponse,
)

__all__ = [
    "Config",
    "User",
    "Client",
    "Principal",
    "ResourceInstance",
    "FunctionResult",
    "Operation",
    "ResourceRequest",
    "ResourceResponse",
]
