# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Package store defines the persistence collaborator interface and an
in-memory implementation for development and testing.
"""

from .types import ResourceStore

from .memory import (
    MemoryResourceStore,
    normalize_targets
)

__all__ = [
    'ResourceStore',
    'MemoryResourceStore',
    'normalize_targets',
]
