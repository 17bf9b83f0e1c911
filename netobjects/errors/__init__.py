# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Error taxonomy for netobjects.

Every rejection the core produces is a NetObjectsError subclass carrying an
ErrorCode, the status a transport should answer with, and an optional
ErrorContext. Serialized payloads only ever contain the error kind, a
description and request correlation data; field values and other principals'
data never end up in an error.
"""

from enum import Enum
from datetime import datetime
from typing import Dict, Any, Optional, List, TYPE_CHECKING
from dataclasses import dataclass

if TYPE_CHECKING:
    from ..core.types import FunctionResult


class ErrorCode(Enum):
    """Structured error codes surfaced to the transport collaborator."""

    # Access errors
    SESSION_REQUIRED = "session_required"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"

    # Request references an undeclared entity
    UNKNOWN_RESOURCE = "unknown_resource"
    UNKNOWN_FUNCTION = "unknown_function"
    UNKNOWN_FIELD = "unknown_field"
    INVALID_REQUEST = "invalid_request"

    # Function handlers
    HANDLER_FAILURE = "handler_failure"

    # Registration errors
    DUPLICATE_PATH = "duplicate_path"
    INVALID_DESCRIPTOR = "invalid_descriptor"
    REGISTRY_FROZEN = "registry_frozen"


@dataclass
class ErrorContext:
    """Additional context for errors."""

    request_id: Optional[str] = None
    resource_path: Optional[str] = None
    operation: Optional[str] = None
    timestamp: datetime = None
    metadata: Dict[str, Any] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now()
        if self.metadata is None:
            self.metadata = {}


class NetObjectsError(Exception):
    """
    Base exception class for all netobjects errors.

    Provides the error code, the transport status code and request context.
    """

    status_code: int = 500

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None
    ):
        self.code = code
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.context = context or ErrorContext()
        self.cause = cause

        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to the payload handed to the transport."""
        result = {
            "error": self.code.value,
            "error_description": self.message,
            "timestamp": self.context.timestamp.isoformat(),
        }

        if self.context.request_id:
            result["request_id"] = self.context.request_id

        return result

    def is_client_error(self) -> bool:
        """Check if this error was caused by the request itself."""
        return 400 <= self.status_code < 500


class SessionRequiredError(NetObjectsError):
    """The resource type requires an authenticated session and none is present."""

    status_code = 401

    def __init__(self, message: str = "Authentication session required", **kwargs):
        super().__init__(code=ErrorCode.SESSION_REQUIRED, message=message, **kwargs)


class ForbiddenError(NetObjectsError):
    """Resource-level or field-level authorization failed."""

    status_code = 403

    def __init__(self, message: str = "Access forbidden", denied_count: int = 0, **kwargs):
        self.denied_count = denied_count
        super().__init__(code=ErrorCode.FORBIDDEN, message=message, **kwargs)


class NotFoundError(NetObjectsError):
    """
    The instance does not exist, or exists but is not visible to the principal.

    Both cases raise the same error with the same message.
    """

    status_code = 404

    def __init__(self, message: str = "Resource not found", **kwargs):
        super().__init__(code=ErrorCode.NOT_FOUND, message=message, **kwargs)


class UnknownResourceError(NetObjectsError):
    """No resource type is registered under the requested path."""

    status_code = 404

    def __init__(self, path: str, **kwargs):
        self.path = path
        super().__init__(
            code=ErrorCode.UNKNOWN_RESOURCE,
            message=f"Unknown resource type '{path}'",
            **kwargs
        )


class UnknownFunctionError(NetObjectsError):
    """The function name is not declared by the resource type."""

    status_code = 404

    def __init__(self, path: str, function_name: str, **kwargs):
        self.path = path
        self.function_name = function_name
        super().__init__(
            code=ErrorCode.UNKNOWN_FUNCTION,
            message=f"Unknown function '{function_name}' for resource type '{path}'",
            **kwargs
        )


class UnknownFieldError(NetObjectsError):
    """One or more attribute or relationship names are not declared by the type."""

    status_code = 400

    def __init__(self, path: str, fields: List[str], **kwargs):
        self.path = path
        self.fields = sorted(fields)
        super().__init__(
            code=ErrorCode.UNKNOWN_FIELD,
            message=f"Unknown field(s) for resource type '{path}': {', '.join(self.fields)}",
            **kwargs
        )


class InvalidRequestError(NetObjectsError):
    """The request is malformed for the requested operation."""

    status_code = 400

    def __init__(self, message: str, **kwargs):
        super().__init__(code=ErrorCode.INVALID_REQUEST, message=message, **kwargs)


class HandlerFailureError(NetObjectsError):
    """
    A function handler raised, returned something unusable, or returned a
    failure status.

    When the handler produced a failure status the original FunctionResult is
    kept on ``result`` for the transport; it is not part of ``to_dict()``.
    """

    status_code = 500

    def __init__(
        self,
        path: str,
        function_name: str,
        message: Optional[str] = None,
        result: Optional["FunctionResult"] = None,
        **kwargs
    ):
        self.path = path
        self.function_name = function_name
        self.result = result
        if result is not None:
            kwargs.setdefault("status_code", result.status_code)
        super().__init__(
            code=ErrorCode.HANDLER_FAILURE,
            message=message or f"Function '{function_name}' failed",
            **kwargs
        )


class RegistrationError(NetObjectsError):
    """Base class for errors raised while building the resource registry."""

    def __init__(self, code: ErrorCode, message: str, **kwargs):
        super().__init__(code=code, message=message, **kwargs)


class DuplicatePathError(RegistrationError):
    """A resource type is already registered under this path."""

    def __init__(self, path: str, **kwargs):
        self.path = path
        super().__init__(
            ErrorCode.DUPLICATE_PATH,
            f"Resource path '{path}' is already registered",
            **kwargs
        )


class InvalidDescriptorError(RegistrationError):
    """A resource type descriptor or its handler table is inconsistent."""

    def __init__(self, message: str, **kwargs):
        super().__init__(ErrorCode.INVALID_DESCRIPTOR, message, **kwargs)


class RegistryFrozenError(RegistrationError):
    """Registration was attempted after the registry started serving."""

    def __init__(self, path: str, **kwargs):
        self.path = path
        super().__init__(
            ErrorCode.REGISTRY_FROZEN,
            f"Cannot register '{path}': registry is frozen",
            **kwargs
        )


__all__ = [
    "ErrorCode",
    "ErrorContext",
    "NetObjectsError",
    "SessionRequiredError",
    "ForbiddenError",
    "NotFoundError",
    "UnknownResourceError",
    "UnknownFunctionError",
    "UnknownFieldError",
    "InvalidRequestError",
    "HandlerFailureError",
    "RegistrationError",
    "DuplicatePathError",
    "InvalidDescriptorError",
    "RegistryFrozenError",
]
