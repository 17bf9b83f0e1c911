# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Core types and data structures for netobjects.

Principals, resource instances, function results and the logical
request/response shape exchanged with the transport collaborator.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


@dataclass(frozen=True)
class User:
    """An authenticated end user."""
    identifier: int
    username: str = ""
    attributes: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            'identifier': self.identifier,
            'username': self.username,
        }


@dataclass(frozen=True)
class Client:
    """
    The client application acting on a user's behalf.

    ``first_party`` marks applications operated by the API owner itself;
    evaluators may grant them more than third-party applications.
    """
    identifier: int
    name: str = ""
    first_party: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            'identifier': self.identifier,
            'name': self.name,
            'first_party': self.first_party,
        }


@dataclass(frozen=True)
class Principal:
    """
    The two actors in every access decision.

    Either side may be absent: an anonymous request has neither, and
    creation of some resource types may be performed by a client alone.
    """
    user: Optional[User] = None
    client: Optional[Client] = None

    @property
    def has_session(self) -> bool:
        """True when an authenticated user is present."""
        return self.user is not None

    @property
    def is_anonymous(self) -> bool:
        return self.user is None and self.client is None

    @classmethod
    def anonymous(cls) -> 'Principal':
        """The explicit unauthenticated marker."""
        return cls()

    @classmethod
    def client_only(cls, client: Client) -> 'Principal':
        return cls(user=None, client=client)

    def describe(self) -> Dict[str, Optional[int]]:
        """Identifiers only, for logs and audit events."""
        return {
            'user_id': self.user.identifier if self.user else None,
            'client_id': self.client.identifier if self.client else None,
        }


@dataclass
class ResourceInstance:
    """
    A request-local snapshot of a stored entity.

    ``relationships`` maps each relationship name to the ordered identifiers
    of its targets. The core never writes to an instance; the store does.
    """
    resource_path: str
    identifier: int
    attributes: Dict[str, Any] = field(default_factory=dict)
    relationships: Dict[str, List[int]] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        """Look up an attribute value."""
        return self.attributes.get(name, default)

    def snapshot(self) -> 'ResourceInstance':
        """Deep copy handed out to a single request."""
        return ResourceInstance(
            resource_path=self.resource_path,
            identifier=self.identifier,
            attributes=copy.deepcopy(self.attributes),
            relationships={k: list(v) for k, v in self.relationships.items()},
        )


@dataclass(frozen=True)
class FunctionResult:
    """
    Result of a resource function: a status code and an optional payload.

    The payload is opaque to the core and passed through as-is.
    """
    status_code: int
    body: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status_code': self.status_code,
            'body': self.body,
        }


class Operation(Enum):
    """Operation kinds accepted by the orchestrator."""
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    INVOKE = "invoke"


@dataclass
class ResourceRequest:
    """
    A transport request already decoded into its logical parts.

    ``fields`` is the requested field names for reads and a name/value
    mapping for creates and updates.
    """
    path: str
    operation: Operation
    principal: Principal = field(default_factory=Principal.anonymous)
    identifier: Optional[int] = None
    fields: Optional[Union[List[str], Dict[str, Any]]] = None
    function_name: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    request_id: Optional[str] = None


@dataclass
class ResourceResponse:
    """Logical response handed back to the transport collaborator."""
    status_code: int
    body: Optional[Dict[str, Any]] = None
    error_code: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_code is None and self.status_code < 400

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'status_code': self.status_code,
            'body': self.body,
        }
        if self.error_code:
            result['error'] = self.error_code
        return result
