# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Package authz implements the permission evaluator interface and the access
decision engine for netobjects resource types.
"""

from .types import (
    AccessDecision,
    AccessMode,
    DecisionScope
)

from .evaluator import (
    PermissionEvaluator,
    PublicReadEvaluator,
    owned_by
)

from .checker import (
    AccessChecker,
    find_narrowing_violations
)

from .context import (
    RequestContext,
    RequestContextManager,
    RequestState,
    InvalidTransitionError,
    get_request_context
)

__all__ = [
    # Types
    'AccessDecision',
    'AccessMode',
    'DecisionScope',

    # Evaluators
    'PermissionEvaluator',
    'PublicReadEvaluator',
    'owned_by',

    # Decision engine
    'AccessChecker',
    'find_narrowing_violations',

    # Context
    'RequestContext',
    'RequestContextManager',
    'RequestState',
    'InvalidTransitionError',
    'get_request_context'
]
