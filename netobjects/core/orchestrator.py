"""
Request orchestrator for netobjects.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

The orchestrator runs the authorize-then-serve flow for every request:

    resolve type -> session -> fetch -> visibility -> [editability]
        -> field/function names -> field rules -> store or dispatcher

Session presence is checked before the instance is looked up, and an
instance that is not visible is reported exactly like a missing one, so a
caller can never learn whether an instance exists without being allowed to
see it.
"""

from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional, Sequence, TypeVar
import logging
import time
import uuid

from .config import Config
from .types import (
    FunctionResult,
    Operation,
    Principal,
    ResourceInstance,
    ResourceRequest,
    ResourceResponse,
)
from ..audit.logger import AuditEvent, AuditLogger, MemoryAuditLogger
from ..authz.checker import AccessChecker, find_narrowing_violations
from ..authz.context import RequestContext, RequestContextManager, RequestState
from ..authz.types import DecisionScope
from ..dispatch.dispatcher import FunctionDispatcher
from ..errors import (
    ForbiddenError,
    HandlerFailureError,
    InvalidDescriptorError,
    InvalidRequestError,
    NetObjectsError,
    NotFoundError,
    SessionRequiredError,
    UnknownFieldError,
)
from ..metrics.collector import MetricConfig, MetricsCollector
from ..registry import ResourceTypeDescriptor, ResourceTypeRegistry
from ..store.memory import normalize_targets
from ..store.types import ResourceStore


T = TypeVar("T")

# Metric label for requests naming an unregistered path
UNKNOWN_RESOURCE_LABEL = "_unknown"

_STATUS_BY_OPERATION = {
    Operation.CREATE: 201,
    Operation.READ: 200,
    Operation.UPDATE: 204,
    Operation.DELETE: 204,
}


class RequestOrchestrator:
    """
    Entry point the transport collaborator calls for every resource request.
    Use RequestOrchestrator.new() to construct one; it validates the
    configuration and freezes the registry.
    """

    def __init__(
        self,
        registry: ResourceTypeRegistry,
        store: ResourceStore,
        config: Optional[Config] = None,
        audit_logger: Optional[AuditLogger] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            registry: Resource types served by this orchestrator
            store: Persistence collaborator
            config: Orchestrator configuration (defaults to Config())
            audit_logger: Audit logging implementation (defaults to in-memory
                when auditing is enabled)
            metrics: Metrics collector (defaults to a private Prometheus registry)
        """
        self.config = config or Config()
        self.registry = registry
        self.store = store
        self.dispatcher = FunctionDispatcher(registry)
        if audit_logger is None and self.config.audit_enabled:
            audit_logger = MemoryAuditLogger(max_entries=self.config.audit_max_entries)
        self.audit_logger = audit_logger
        self.metrics = metrics or MetricsCollector(MetricConfig(enabled=self.config.metrics_enabled))
        self.logger = logging.getLogger(__name__)

    @classmethod
    def new(
        cls,
        registry: ResourceTypeRegistry,
        store: ResourceStore,
        config: Optional[Config] = None,
        audit_logger: Optional[AuditLogger] = None,
        metrics: Optional[MetricsCollector] = None,
        sample_principals: Sequence[Principal] = (),
        sample_instances: Optional[Mapping[str, Sequence[ResourceInstance]]] = None,
    ) -> "RequestOrchestrator":
        """
        Create an orchestrator ready to serve traffic.

        When ``config.verify_evaluators`` is set, every registered evaluator is
        checked against the sample principals and instances first.

        Raises:
            ValueError: If the configuration is invalid
            InvalidDescriptorError: If an evaluator widens access past its
                resource-level rule on the samples

        Example:
            orchestrator = RequestOrchestrator.new(registry, MemoryResourceStore())
        """
        config = config or Config()
        config.validate()
        config.apply_logging()

        registry.freeze()
        orchestrator = cls(registry, store, config, audit_logger, metrics)

        if config.verify_evaluators:
            orchestrator.verify_evaluators(sample_principals, sample_instances or {})

        return orchestrator

    def verify_evaluators(
        self,
        principals: Sequence[Principal],
        instances: Mapping[str, Sequence[ResourceInstance]]
    ) -> None:
        """Raise InvalidDescriptorError if any field rule widens access on the samples."""
        violations = find_narrowing_violations(self.registry, principals, instances)
        if violations:
            path, _, identifier, label = violations[0]
            raise InvalidDescriptorError(
                f"Evaluator for '{path}' widens access for {label} on instance {identifier} "
                f"({len(violations)} violation(s) in total)"
            )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create(
        self,
        path: str,
        principal: Principal,
        fields: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ) -> int:
        """
        Create a new instance and return its identifier.

        Raises:
            UnknownResourceError, SessionRequiredError, ForbiddenError,
            UnknownFieldError, InvalidRequestError
        """
        fields = dict(fields or {})

        async def work(context: RequestContext) -> int:
            descriptor = self._begin(path, principal, context)
            checker = self._checker(descriptor)

            decision = checker.can_create(principal)
            context.add_decision(decision)
            if not decision.allowed:
                raise ForbiddenError(f"Cannot create '{path}'")
            context.advance(RequestState.AUTHORIZED)

            write = self._validate_write_set(descriptor, fields)
            instance = await self.store.create(descriptor, write)
            context.identifier = instance.identifier
            return instance.identifier

        return await self._serve(path, Operation.CREATE, principal, None, request_id, work)

    async def read(
        self,
        path: str,
        principal: Principal,
        identifier: int,
        fields: Optional[Iterable[str]] = None,
        request_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Read the visible fields of an instance.

        With no ``fields`` every declared attribute and relationship is
        considered. Fields the principal may not see are left out of the
        result without any error; relationships are returned as ordered
        lists of target identifiers.

        Raises:
            UnknownResourceError, SessionRequiredError, NotFoundError,
            UnknownFieldError, InvalidRequestError
        """
        async def work(context: RequestContext) -> Dict[str, Any]:
            if isinstance(fields, str):
                raise InvalidRequestError("read expects a list of field names")
            descriptor = self._begin(path, principal, context)
            checker = self._checker(descriptor)
            instance = await self._fetch_visible(descriptor, checker, principal, identifier, context)
            context.advance(RequestState.AUTHORIZED)

            if fields is None:
                requested = sorted(descriptor.attributes) + sorted(descriptor.relationships)
            else:
                requested = list(dict.fromkeys(fields))
                unknown = descriptor.unknown_fields(requested)
                if unknown:
                    raise UnknownFieldError(path, unknown)

            attributes, relationships = descriptor.split_fields(requested)
            readable_attributes, readable_relationships = checker.filter_readable(
                principal, instance, attributes, relationships
            )
            await self.metrics.record_field_decisions(
                path, DecisionScope.ATTRIBUTE.value,
                len(readable_attributes), len(attributes) - len(readable_attributes)
            )
            await self.metrics.record_field_decisions(
                path, DecisionScope.RELATIONSHIP.value,
                len(readable_relationships), len(relationships) - len(readable_relationships)
            )

            body: Dict[str, Any] = {
                name: instance.attributes.get(name) for name in readable_attributes
            }
            for name in readable_relationships:
                body[name] = await self.store.resolve_relationship_targets(instance, name)
            return body

        return await self._serve(path, Operation.READ, principal, identifier, request_id, work)

    async def update(
        self,
        path: str,
        principal: Principal,
        identifier: int,
        fields: Dict[str, Any],
        request_id: Optional[str] = None,
    ) -> None:
        """
        Apply a write set to an instance, all or nothing.

        If any field of the write set may not be edited, nothing is written.

        Raises:
            UnknownResourceError, SessionRequiredError, NotFoundError,
            ForbiddenError, UnknownFieldError, InvalidRequestError
        """
        fields = dict(fields or {})

        async def work(context: RequestContext) -> None:
            descriptor = self._begin(path, principal, context)
            checker = self._checker(descriptor)
            instance = await self._fetch_visible(descriptor, checker, principal, identifier, context)
            self._require_editable(checker, principal, instance, context)
            context.advance(RequestState.AUTHORIZED)

            if not fields:
                raise InvalidRequestError("Write set is empty")
            write = self._validate_write_set(descriptor, fields)

            attributes, relationships = descriptor.split_fields(write)
            denied = checker.check_writable(principal, instance, attributes, relationships)
            for decision in denied:
                context.add_decision(decision)
            if denied:
                self.logger.warning(
                    f"Rejected write to {path}/{identifier}: {len(denied)} of {len(write)} field(s) not editable"
                )
                raise ForbiddenError(
                    f"{len(denied)} field(s) of the write set are not editable",
                    denied_count=len(denied)
                )

            await self.store.apply_write(instance, write)

        await self._serve(path, Operation.UPDATE, principal, identifier, request_id, work)

    async def delete(
        self,
        path: str,
        principal: Principal,
        identifier: int,
        request_id: Optional[str] = None,
    ) -> None:
        """
        Delete an instance; requires the instance to be visible and editable.

        Raises:
            UnknownResourceError, SessionRequiredError, NotFoundError, ForbiddenError
        """
        async def work(context: RequestContext) -> None:
            descriptor = self._begin(path, principal, context)
            checker = self._checker(descriptor)
            instance = await self._fetch_visible(descriptor, checker, principal, identifier, context)
            self._require_editable(checker, principal, instance, context)
            context.advance(RequestState.AUTHORIZED)

            await self.store.delete(instance)

        await self._serve(path, Operation.DELETE, principal, identifier, request_id, work)

    async def invoke(
        self,
        path: str,
        principal: Principal,
        identifier: int,
        function_name: str,
        payload: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ) -> FunctionResult:
        """
        Invoke a resource function on a visible instance.

        The handler's FunctionResult is returned unchanged.

        Raises:
            UnknownResourceError, SessionRequiredError, NotFoundError,
            UnknownFunctionError, HandlerFailureError
        """
        async def work(context: RequestContext) -> FunctionResult:
            descriptor = self._begin(path, principal, context)
            checker = self._checker(descriptor)
            instance = await self._fetch_visible(descriptor, checker, principal, identifier, context)
            context.advance(RequestState.AUTHORIZED)

            try:
                result = await self.dispatcher.dispatch(
                    descriptor, function_name, principal, instance, payload
                )
            except HandlerFailureError as e:
                status = e.result.status_code if e.result is not None else e.status_code
                await self.metrics.record_function_call(path, function_name, status)
                raise
            await self.metrics.record_function_call(path, function_name, result.status_code)
            return result

        return await self._serve(path, Operation.INVOKE, principal, identifier, request_id, work)

    async def handle(self, request: ResourceRequest) -> ResourceResponse:
        """
        Serve a decoded transport request and build the logical response.

        Every netobjects error becomes a response carrying the error kind.
        Errors raised by the store propagate unchanged.
        """
        try:
            return await self._handle(request)
        except HandlerFailureError as e:
            if e.result is not None:
                return ResourceResponse(
                    status_code=e.result.status_code,
                    body=e.result.body,
                    error_code=e.code.value
                )
            return ResourceResponse(e.status_code, e.to_dict(), e.code.value)
        except NetObjectsError as e:
            return ResourceResponse(e.status_code, e.to_dict(), e.code.value)

    async def _handle(self, request: ResourceRequest) -> ResourceResponse:
        operation = request.operation

        if operation == Operation.CREATE:
            identifier = await self.create(
                request.path, request.principal, self._write_fields(request), request.request_id
            )
            descriptor = self.registry.resolve(request.path)
            return ResourceResponse(_STATUS_BY_OPERATION[operation], {descriptor.identifier_key: identifier})

        if request.identifier is None:
            raise InvalidRequestError(f"{operation.value} requires an instance identifier")

        if operation == Operation.READ:
            if isinstance(request.fields, (dict, str)):
                raise InvalidRequestError("read expects a list of field names")
            body = await self.read(
                request.path, request.principal, request.identifier, request.fields, request.request_id
            )
            return ResourceResponse(_STATUS_BY_OPERATION[operation], body)

        if operation == Operation.UPDATE:
            await self.update(
                request.path, request.principal, request.identifier,
                self._write_fields(request), request.request_id
            )
            return ResourceResponse(_STATUS_BY_OPERATION[operation])

        if operation == Operation.DELETE:
            await self.delete(request.path, request.principal, request.identifier, request.request_id)
            return ResourceResponse(_STATUS_BY_OPERATION[operation])

        if not request.function_name:
            raise InvalidRequestError("invoke requires a function name")
        result = await self.invoke(
            request.path, request.principal, request.identifier,
            request.function_name, request.payload, request.request_id
        )
        return ResourceResponse(result.status_code, result.body)

    # ------------------------------------------------------------------
    # Flow helpers
    # ------------------------------------------------------------------

    async def _serve(
        self,
        path: str,
        operation: Operation,
        principal: Principal,
        identifier: Optional[int],
        request_id: Optional[str],
        work: Callable[[RequestContext], Awaitable[T]],
    ) -> T:
        context = RequestContext(
            resource_path=path,
            operation=operation.value,
            request_id=request_id or str(uuid.uuid4()),
            identifier=identifier,
        )
        start = time.perf_counter()

        async with RequestContextManager(context):
            try:
                result = await work(context)
            except NetObjectsError as e:
                e.context.request_id = e.context.request_id or context.request_id
                e.context.resource_path = path
                e.context.operation = operation.value
                if not context.is_terminal:
                    context.reject(e.code.value)
                self.logger.warning(
                    f"Rejected {operation.value} {path}"
                    f"{'/' + str(identifier) if identifier is not None else ''}: {e.code.value}"
                )
                await self._finish(context, principal, start, e.code.value)
                raise
            except Exception as e:
                if not context.is_terminal:
                    context.reject("collaborator_failure")
                self.logger.error(f"{operation.value} {path} failed in a collaborator: {e}")
                await self._finish(context, principal, start, "collaborator_failure")
                raise

            context.advance(RequestState.SERVED)
            self.logger.info(
                f"Served {operation.value} {path}"
                f"{'/' + str(context.identifier) if context.identifier is not None else ''}"
            )
            await self._finish(context, principal, start, "served")
            return result

    async def _finish(self, context: RequestContext, principal: Principal,
                      start: float, outcome: str) -> None:
        resource = context.resource_path
        if resource not in self.registry:
            resource = UNKNOWN_RESOURCE_LABEL
        await self.metrics.record_request(
            resource, context.operation, outcome, time.perf_counter() - start
        )

        if self.audit_logger is None:
            return

        ids = principal.describe()
        await self.audit_logger.log(AuditEvent(
            event_type=context.state.value,
            resource_path=context.resource_path,
            operation=context.operation,
            request_id=context.request_id,
            identifier=context.identifier,
            user_id=ids['user_id'],
            client_id=ids['client_id'],
            error_code=context.error_code,
            details={"history": [state.value for state in context.history]},
        ))

    def _begin(self, path: str, principal: Principal, context: RequestContext) -> ResourceTypeDescriptor:
        """Resolve the type and check the session requirement."""
        descriptor = self.registry.resolve(path)
        if descriptor.requires_session and not principal.has_session:
            raise SessionRequiredError()
        context.advance(RequestState.SESSION_CHECKED)
        return descriptor

    def _checker(self, descriptor: ResourceTypeDescriptor) -> AccessChecker:
        return AccessChecker(self.registry.evaluator_for(descriptor))

    async def _fetch_visible(
        self,
        descriptor: ResourceTypeDescriptor,
        checker: AccessChecker,
        principal: Principal,
        identifier: int,
        context: RequestContext,
    ) -> ResourceInstance:
        instance = await self.store.fetch(descriptor, identifier)
        if instance is None:
            raise NotFoundError()

        decision = checker.check_visible(principal, instance)
        context.add_decision(decision)
        if not decision.allowed:
            # Same error as a missing instance
            raise NotFoundError()
        return instance

    def _require_editable(self, checker: AccessChecker, principal: Principal,
                          instance: ResourceInstance, context: RequestContext) -> None:
        decision = checker.check_editable(principal, instance)
        context.add_decision(decision)
        if not decision.allowed:
            raise ForbiddenError(f"Resource '{instance.resource_path}' is not editable")

    def _validate_write_set(self, descriptor: ResourceTypeDescriptor,
                            fields: Dict[str, Any]) -> Dict[str, Any]:
        """Reject unknown names and the identifier key; normalize relationship values."""
        unknown = descriptor.unknown_fields(fields)
        if unknown:
            raise UnknownFieldError(descriptor.path, unknown)

        if descriptor.identifier_key in fields:
            raise ForbiddenError(
                f"'{descriptor.identifier_key}' cannot be written", denied_count=1
            )

        write = {}
        for name, value in fields.items():
            if name in descriptor.relationships:
                try:
                    write[name] = normalize_targets(value)
                except (TypeError, ValueError):
                    raise InvalidRequestError(f"Invalid targets for relationship '{name}'") from None
            else:
                write[name] = value
        return write

    @staticmethod
    def _write_fields(request: ResourceRequest) -> Dict[str, Any]:
        if request.fields is None:
            return {}
        if not isinstance(request.fields, dict):
            raise InvalidRequestError(f"{request.operation.value} expects a mapping of field values")
        return request.fields
