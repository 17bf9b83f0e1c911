"""
Authentication collaborator interface and in-memory implementation.
"""

from .authenticator import (
    Authenticator,
    Credentials,
    MemoryAuthenticator
)

__all__ = [
    'Authenticator',
    'Credentials',
    'MemoryAuthenticator',
]
