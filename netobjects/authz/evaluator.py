# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Per-resource-type permission evaluators.

Each registered resource type supplies one PermissionEvaluator. The base
class denies creation, visibility and editability, and answers every
field-level question with the resource-level answer, so a subclass that
overrides a field check and ANDs its rule with ``super()`` can only narrow
access.
"""

from abc import ABC
from typing import Callable, Optional

from ..core.types import Principal, ResourceInstance


class PermissionEvaluator(ABC):
    """
    Base class for the authorization rules of one resource type.

    Evaluators must be pure functions of (principal, instance, field): they
    are shared by all concurrent requests and never cache decisions.
    """

    def can_create(self, principal: Principal) -> bool:
        """Whether the principal may create a new instance."""
        return False

    def is_visible(self, principal: Principal, instance: ResourceInstance) -> bool:
        """Whether the instance may be seen at all."""
        return False

    def is_editable(self, principal: Principal, instance: ResourceInstance) -> bool:
        """Whether the instance may be modified at all."""
        return False

    def attribute_is_visible(self, principal: Principal, instance: ResourceInstance,
                             attribute: str) -> bool:
        return self.is_visible(principal, instance)

    def attribute_is_editable(self, principal: Principal, instance: ResourceInstance,
                              attribute: str) -> bool:
        return self.is_editable(principal, instance)

    def relationship_is_visible(self, principal: Principal, instance: ResourceInstance,
                                relationship: str) -> bool:
        return self.is_visible(principal, instance)

    def relationship_is_editable(self, principal: Principal, instance: ResourceInstance,
                                 relationship: str) -> bool:
        return self.is_editable(principal, instance)


class PublicReadEvaluator(PermissionEvaluator):
    """
    Anyone may view; only principals accepted by ``owner_check`` may edit.

    Creation is granted to any principal with a session.
    """

    def __init__(self, owner_check: Optional[Callable[[Principal, ResourceInstance], bool]] = None):
        self._owner_check = owner_check

    def can_create(self, principal: Principal) -> bool:
        return principal.has_session

    def is_visible(self, principal: Principal, instance: ResourceInstance) -> bool:
        return True

    def is_editable(self, principal: Principal, instance: ResourceInstance) -> bool:
        if self._owner_check is None:
            return False
        return bool(self._owner_check(principal, instance))


def owned_by(attribute: str) -> Callable[[Principal, ResourceInstance], bool]:
    """
    Build an ownership check comparing an instance attribute to the user id.

    Example:
        evaluator = PublicReadEvaluator(owner_check=owned_by("author_id"))
    """
    def check(principal: Principal, instance: ResourceInstance) -> bool:
        if principal.user is None:
            return False
        return instance.get(attribute) == principal.user.identifier

    return check
