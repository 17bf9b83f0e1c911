"""
Request-scoped context for netobjects.

Tracks where a request is in the authorize-then-serve flow and which
decisions were taken for it. A RequestContext belongs to exactly one request
and is never shared.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from contextvars import ContextVar
import uuid

from .types import AccessDecision


# Context variable for the request currently being served on this task
_request_context: ContextVar[Optional['RequestContext']] = ContextVar(
    'request_context', default=None
)


class RequestState(Enum):
    """States of a request; SERVED and REJECTED are terminal."""
    RECEIVED = "received"
    SESSION_CHECKED = "session_checked"
    AUTHORIZED = "authorized"
    SERVED = "served"
    REJECTED = "rejected"


_TRANSITIONS = {
    RequestState.RECEIVED: {RequestState.SESSION_CHECKED, RequestState.REJECTED},
    RequestState.SESSION_CHECKED: {RequestState.AUTHORIZED, RequestState.REJECTED},
    RequestState.AUTHORIZED: {RequestState.SERVED, RequestState.REJECTED},
    RequestState.SERVED: set(),
    RequestState.REJECTED: set(),
}


class InvalidTransitionError(RuntimeError):
    """Raised when a request context is moved along an undefined edge."""


@dataclass
class RequestContext:
    """
    Context information for one request.
    """
    resource_path: str
    operation: str
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    identifier: Optional[int] = None
    timestamp: datetime = field(default_factory=datetime.now)
    state: RequestState = RequestState.RECEIVED
    error_code: Optional[str] = None
    decisions: List[AccessDecision] = field(default_factory=list)
    history: List[RequestState] = field(default_factory=lambda: [RequestState.RECEIVED])

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self.state]

    def advance(self, state: RequestState) -> None:
        """Move to the next state."""
        if state not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"Cannot move request {self.request_id} from {self.state.value} to {state.value}"
            )
        self.state = state
        self.history.append(state)

    def reject(self, error_code: str) -> None:
        """Move to REJECTED, recording the error kind."""
        self.advance(RequestState.REJECTED)
        self.error_code = error_code

    def add_decision(self, decision: AccessDecision) -> None:
        self.decisions.append(decision)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            'request_id': self.request_id,
            'resource_path': self.resource_path,
            'operation': self.operation,
            'identifier': self.identifier,
            'timestamp': self.timestamp.isoformat(),
            'state': self.state.value,
            'error_code': self.error_code,
            'history': [s.value for s in self.history],
            'decisions': [d.to_dict() for d in self.decisions]
        }


def get_request_context() -> Optional[RequestContext]:
    """Get the context of the request being served on this task."""
    return _request_context.get()


class RequestContextManager:
    """
    Async context manager binding a RequestContext to the current task.
    """

    def __init__(self, context: RequestContext):
        self.context = context
        self._token = None

    async def __aenter__(self) -> RequestContext:
        self._token = _request_context.set(self.context)
        return self.context

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        _request_context.reset(self._token)
