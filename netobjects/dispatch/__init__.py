"""
Function dispatch for netobjects resource types.
"""

from .dispatcher import FunctionDispatcher, normalize_result

__all__ = [
    'FunctionDispatcher',
    'normalize_result',
]
