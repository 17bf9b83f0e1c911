# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Function dispatcher.

Routes a named function invocation to the handler registered for the
resource type and normalizes what the handler returns into a FunctionResult.
Handlers carry their own authorization; the attribute and relationship rules
of the resource's evaluator do not apply to them. Nothing here retries.
"""

from typing import Any, Dict, Optional
import inspect
import logging

from ..core.types import FunctionResult, Principal, ResourceInstance
from ..errors import HandlerFailureError, SessionRequiredError, UnknownFunctionError
from ..registry import ResourceTypeDescriptor, ResourceTypeRegistry


logger = logging.getLogger(__name__)


def normalize_result(value: Any) -> Optional[FunctionResult]:
    """
    Convert a handler return value into a FunctionResult.

    Accepts a FunctionResult, a bare status code, or a (status, body) tuple.
    Returns None for anything else.
    """
    if isinstance(value, FunctionResult):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return FunctionResult(status_code=value)
    if (isinstance(value, tuple) and len(value) == 2
            and isinstance(value[0], int) and not isinstance(value[0], bool)
            and (value[1] is None or isinstance(value[1], dict))):
        return FunctionResult(status_code=value[0], body=value[1])
    return None


class FunctionDispatcher:
    """
    Dispatches resource functions through the handler tables of a registry.
    """

    def __init__(self, registry: ResourceTypeRegistry):
        self.registry = registry

    async def dispatch(
        self,
        descriptor: ResourceTypeDescriptor,
        function_name: str,
        principal: Principal,
        instance: ResourceInstance,
        payload: Optional[Dict[str, Any]] = None
    ) -> FunctionResult:
        """
        Invoke ``function_name`` on ``instance``.

        Args:
            descriptor: The resolved resource type
            function_name: Name of the function, must be declared by the type
            principal: The requesting principal
            instance: The target instance
            payload: Opaque request payload handed to the handler

        Returns:
            FunctionResult: The handler's result, unchanged when it already
                is a FunctionResult

        Raises:
            UnknownFunctionError: If the type does not declare the function
            SessionRequiredError: If the type requires a session and the
                principal has none
            HandlerFailureError: If the handler raised, returned an unusable
                value, or returned a failure status
        """
        if function_name not in descriptor.function_names:
            raise UnknownFunctionError(descriptor.path, function_name)

        if descriptor.requires_session and not principal.has_session:
            raise SessionRequiredError()

        handler = self.registry.handlers_for(descriptor)[function_name]

        try:
            value = handler(principal, instance, payload or {})
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            logger.error(
                f"Function '{function_name}' on {descriptor.path}/{instance.identifier} raised: {e}"
            )
            raise HandlerFailureError(descriptor.path, function_name, cause=e) from e

        result = normalize_result(value)
        if result is None:
            logger.error(
                f"Function '{function_name}' on {descriptor.path} returned "
                f"unsupported value of type {type(value).__name__}"
            )
            raise HandlerFailureError(
                descriptor.path,
                function_name,
                message=f"Function '{function_name}' returned an invalid result"
            )

        if not result.ok:
            logger.warning(
                f"Function '{function_name}' on {descriptor.path}/{instance.identifier} "
                f"returned status {result.status_code}"
            )
            raise HandlerFailureError(descriptor.path, function_name, result=result)

        logger.debug(
            f"Function '{function_name}' on {descriptor.path}/{instance.identifier} "
            f"returned status {result.status_code}"
        )
        return result
