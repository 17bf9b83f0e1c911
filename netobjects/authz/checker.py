# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Access decision engine.

AccessChecker wraps a resource type's PermissionEvaluator and turns its
boolean answers into AccessDecisions. A field is accessible only when the
resource-level check AND the field-level check both pass; the field-level
rule is not consulted at all once the resource-level rule denies.
"""

from typing import Dict, Iterable, List, Mapping, Sequence, Tuple
import logging

from ..core.types import Principal, ResourceInstance
from .evaluator import PermissionEvaluator
from .types import AccessDecision, AccessMode, DecisionScope


logger = logging.getLogger(__name__)


class AccessChecker:
    """
    Decision engine for a single resource type.
    """

    def __init__(self, evaluator: PermissionEvaluator):
        self.evaluator = evaluator

    def can_create(self, principal: Principal) -> AccessDecision:
        allowed = bool(self.evaluator.can_create(principal))
        return AccessDecision(
            allowed=allowed,
            reason="creation granted" if allowed else "creation not granted",
            scope=DecisionScope.CREATE,
            mode=AccessMode.EDIT
        )

    def check_visible(self, principal: Principal, instance: ResourceInstance) -> AccessDecision:
        return self._resource_decision(principal, instance, AccessMode.VIEW)

    def check_editable(self, principal: Principal, instance: ResourceInstance) -> AccessDecision:
        return self._resource_decision(principal, instance, AccessMode.EDIT)

    def check_attribute_visible(self, principal: Principal, instance: ResourceInstance,
                                attribute: str) -> AccessDecision:
        return self._field_decision(principal, instance, attribute,
                                    DecisionScope.ATTRIBUTE, AccessMode.VIEW)

    def check_attribute_editable(self, principal: Principal, instance: ResourceInstance,
                                 attribute: str) -> AccessDecision:
        return self._field_decision(principal, instance, attribute,
                                    DecisionScope.ATTRIBUTE, AccessMode.EDIT)

    def check_relationship_visible(self, principal: Principal, instance: ResourceInstance,
                                   relationship: str) -> AccessDecision:
        return self._field_decision(principal, instance, relationship,
                                    DecisionScope.RELATIONSHIP, AccessMode.VIEW)

    def check_relationship_editable(self, principal: Principal, instance: ResourceInstance,
                                    relationship: str) -> AccessDecision:
        return self._field_decision(principal, instance, relationship,
                                    DecisionScope.RELATIONSHIP, AccessMode.EDIT)

    def filter_readable(
        self,
        principal: Principal,
        instance: ResourceInstance,
        attributes: Iterable[str],
        relationships: Iterable[str]
    ) -> Tuple[List[str], List[str]]:
        """
        Return the attributes and relationships the principal may read.

        Each field is decided on its own; a denied field never stops the
        evaluation of the others.
        """
        readable_attributes = [
            name for name in attributes
            if self.check_attribute_visible(principal, instance, name).allowed
        ]
        readable_relationships = [
            name for name in relationships
            if self.check_relationship_visible(principal, instance, name).allowed
        ]
        return readable_attributes, readable_relationships

    def check_writable(
        self,
        principal: Principal,
        instance: ResourceInstance,
        attributes: Iterable[str],
        relationships: Iterable[str]
    ) -> List[AccessDecision]:
        """
        Evaluate every field of a write set and return the denied decisions.

        An empty list means the whole write may be applied.
        """
        decisions = [
            self.check_attribute_editable(principal, instance, name) for name in attributes
        ] + [
            self.check_relationship_editable(principal, instance, name) for name in relationships
        ]
        return [decision for decision in decisions if not decision.allowed]

    def _resource_decision(self, principal: Principal, instance: ResourceInstance,
                           mode: AccessMode) -> AccessDecision:
        if mode == AccessMode.VIEW:
            allowed = bool(self.evaluator.is_visible(principal, instance))
        else:
            allowed = bool(self.evaluator.is_editable(principal, instance))

        verb = "visible" if mode == AccessMode.VIEW else "editable"
        return AccessDecision(
            allowed=allowed,
            reason=f"resource {verb}" if allowed else f"resource not {verb}",
            scope=DecisionScope.RESOURCE,
            mode=mode
        )

    def _field_decision(self, principal: Principal, instance: ResourceInstance, name: str,
                        scope: DecisionScope, mode: AccessMode) -> AccessDecision:
        resource = self._resource_decision(principal, instance, mode)
        if not resource.allowed:
            return AccessDecision(
                allowed=False,
                reason=resource.reason,
                scope=scope,
                mode=mode,
                field_name=name
            )

        if scope == DecisionScope.ATTRIBUTE:
            if mode == AccessMode.VIEW:
                allowed = self.evaluator.attribute_is_visible(principal, instance, name)
            else:
                allowed = self.evaluator.attribute_is_editable(principal, instance, name)
        elif mode == AccessMode.VIEW:
            allowed = self.evaluator.relationship_is_visible(principal, instance, name)
        else:
            allowed = self.evaluator.relationship_is_editable(principal, instance, name)

        allowed = bool(allowed)
        logger.debug(
            f"{scope.value} '{name}' {mode.value} on {instance.resource_path}/"
            f"{instance.identifier}: {'allowed' if allowed else 'denied'}"
        )
        return AccessDecision(
            allowed=allowed,
            reason=f"{scope.value} rule {'passed' if allowed else 'denied'}",
            scope=scope,
            mode=mode,
            field_name=name
        )


def find_narrowing_violations(
    registry,
    principals: Sequence[Principal],
    instances: Mapping[str, Sequence[ResourceInstance]]
) -> List[Tuple[str, Principal, int, str]]:
    """
    Check that no raw evaluator widens access past its resource-level rule.

    For every registered type, every sample principal and every sample
    instance of that type, a field the evaluator reports visible (or
    editable) must belong to a resource the evaluator reports visible (or
    editable). Returns the violations as (path, principal, instance id,
    field) tuples.

    Args:
        registry: The ResourceTypeRegistry to inspect
        principals: Sample principals
        instances: Sample instances keyed by resource path
    """
    violations = []

    for descriptor in registry.descriptors():
        evaluator = registry.evaluator_for(descriptor)
        for instance in instances.get(descriptor.path, ()):
            for principal in principals:
                visible = evaluator.is_visible(principal, instance)
                editable = evaluator.is_editable(principal, instance)
                checks: Dict[str, bool] = {}
                for name in descriptor.attributes:
                    checks[f"attribute:{name}:view"] = (
                        not evaluator.attribute_is_visible(principal, instance, name) or visible
                    )
                    checks[f"attribute:{name}:edit"] = (
                        not evaluator.attribute_is_editable(principal, instance, name) or editable
                    )
                for name in descriptor.relationships:
                    checks[f"relationship:{name}:view"] = (
                        not evaluator.relationship_is_visible(principal, instance, name) or visible
                    )
                    checks[f"relationship:{name}:edit"] = (
                        not evaluator.relationship_is_editable(principal, instance, name) or editable
                    )
                for label, holds in checks.items():
                    if not holds:
                        violations.append(
                            (descriptor.path, principal, instance.identifier, label)
                        )

    if violations:
        logger.warning(f"Found {len(violations)} field rule(s) widening resource access")
    return violations
