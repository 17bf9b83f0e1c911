# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Package registry provides resource type descriptors and the registry that
binds each of them to a permission evaluator and a function handler table.
"""

from .types import ResourceTypeDescriptor

from .registry import (
    FunctionHandler,
    ResourceType,
    ResourceTypeRegistry
)

__all__ = [
    'ResourceTypeDescriptor',
    'FunctionHandler',
    'ResourceType',
    'ResourceTypeRegistry',
]
