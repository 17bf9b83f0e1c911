"""
Authorization decision types for netobjects.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class DecisionScope(Enum):
    """Granularity an access decision was made at."""
    CREATE = "create"
    RESOURCE = "resource"
    ATTRIBUTE = "attribute"
    RELATIONSHIP = "relationship"


class AccessMode(Enum):
    VIEW = "view"
    EDIT = "edit"


@dataclass
class AccessDecision:
    """
    Outcome of a single visibility or editability question.

    Decisions are recomputed for every request and are never stored.
    """
    allowed: bool
    reason: str
    scope: DecisionScope
    mode: AccessMode = AccessMode.VIEW
    field_name: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def __bool__(self) -> bool:
        return self.allowed

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            'allowed': self.allowed,
            'reason': self.reason,
            'scope': self.scope.value,
            'mode': self.mode.value,
            'field': self.field_name,
            'timestamp': self.timestamp.isoformat()
        }
