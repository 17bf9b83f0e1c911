"""
Authentication collaborator for netobjects.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

Turns raw request credentials into a Principal. The orchestrator only ever
sees the resolved Principal, or Principal.anonymous() when nothing resolved.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Tuple
import asyncio
import logging

from ..core.types import Client, Principal, User


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    """Raw credentials as the transport extracted them"""
    session_token: Optional[str] = None
    client_secret: Optional[str] = None


class Authenticator(ABC):
    """Abstract base class for credential resolution"""

    @abstractmethod
    async def authenticate(self, credentials: Credentials) -> Principal:
        """Resolve credentials; unresolvable parts are left empty"""
        pass


class MemoryAuthenticator(Authenticator):
    """
    In-memory authenticator for development and testing.

    Sessions are bound to the client that opened them; a session token
    presented by a different client does not resolve to a user.
    """

    def __init__(self):
        self._clients: Dict[str, Client] = {}
        self._sessions: Dict[str, Tuple[User, int]] = {}
        self._lock = asyncio.Lock()

    async def add_client(self, secret: str, client: Client) -> None:
        async with self._lock:
            self._clients[secret] = client

    async def open_session(self, token: str, user: User, client: Client) -> None:
        async with self._lock:
            self._sessions[token] = (user, client.identifier)

    async def close_session(self, token: str) -> bool:
        async with self._lock:
            return self._sessions.pop(token, None) is not None

    async def authenticate(self, credentials: Credentials) -> Principal:
        async with self._lock:
            client = self._clients.get(credentials.client_secret) if credentials.client_secret else None
            if client is None:
                if credentials.client_secret:
                    logger.warning("Unknown client secret presented")
                return Principal.anonymous()

            user = None
            if credentials.session_token:
                session = self._sessions.get(credentials.session_token)
                if session is None:
                    logger.warning(f"Unknown session token presented by client {client.identifier}")
                elif session[1] != client.identifier:
                    logger.warning(
                        f"Session of client {session[1]} presented by client {client.identifier}"
                    )
                else:
                    user = session[0]

            return Principal(user=user, client=client)
