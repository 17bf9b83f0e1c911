"""
Audit logging module for netobjects access decisions.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any
from datetime import datetime
import asyncio
import json
import logging
import uuid
from collections import deque


logger = logging.getLogger(__name__)


@dataclass
class AuditEvent:
    """
    One served or rejected request.

    Only identifiers and outcome are recorded, never field values.
    """
    event_type: str  # "served" or "rejected"
    resource_path: str
    operation: str
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=datetime.now)
    request_id: Optional[str] = None
    identifier: Optional[int] = None
    user_id: Optional[int] = None
    client_id: Optional[int] = None
    error_code: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "resource_path": self.resource_path,
            "operation": self.operation,
            "timestamp": self.timestamp.isoformat(),
            "request_id": self.request_id,
            "identifier": self.identifier,
            "user_id": self.user_id,
            "client_id": self.client_id,
            "error_code": self.error_code,
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuditEvent":
        return cls(
            event_id=data["event_id"],
            event_type=data["event_type"],
            resource_path=data["resource_path"],
            operation=data["operation"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            request_id=data.get("request_id"),
            identifier=data.get("identifier"),
            user_id=data.get("user_id"),
            client_id=data.get("client_id"),
            error_code=data.get("error_code"),
            details=data.get("details", {}),
        )


class AuditLogger(ABC):
    """Abstract base class for audit logging"""

    @abstractmethod
    async def log(self, event: AuditEvent) -> None:
        """Log an audit event"""
        pass

    @abstractmethod
    async def get_events(
        self,
        resource_path: Optional[str] = None,
        event_type: Optional[str] = None,
        user_id: Optional[int] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[AuditEvent]:
        """Retrieve audit events with optional filtering"""
        pass

    async def close(self) -> None:
        """Close the audit logger and release resources"""
        pass


def _matches(
    event: AuditEvent,
    resource_path: Optional[str],
    event_type: Optional[str],
    user_id: Optional[int],
    start_time: Optional[datetime],
    end_time: Optional[datetime],
) -> bool:
    if resource_path and event.resource_path != resource_path:
        return False
    if event_type and event.event_type != event_type:
        return False
    if user_id is not None and event.user_id != user_id:
        return False
    if start_time and event.timestamp < start_time:
        return False
    if end_time and event.timestamp > end_time:
        return False
    return True


class MemoryAuditLogger(AuditLogger):
    """In-memory audit logger for development and testing"""

    def __init__(self, max_entries: int = 1000):
        self.max_entries = max_entries
        self.events: deque = deque(maxlen=max_entries)
        self._lock = asyncio.Lock()

    async def log(self, event: AuditEvent) -> None:
        """Log an audit event to memory"""
        async with self._lock:
            self.events.append(event)

    async def get_events(
        self,
        resource_path: Optional[str] = None,
        event_type: Optional[str] = None,
        user_id: Optional[int] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[AuditEvent]:
        """Retrieve audit events with optional filtering"""
        async with self._lock:
            return [
                event for event in self.events
                if _matches(event, resource_path, event_type, user_id, start_time, end_time)
            ]


class FileAuditLogger(AuditLogger):
    """File-based audit logger writing one JSON object per line"""

    def __init__(self, file_path: str):
        self.file_path = file_path
        self._lock = asyncio.Lock()

    async def log(self, event: AuditEvent) -> None:
        """Log an audit event to file"""
        async with self._lock:
            try:
                with open(self.file_path, "a", encoding="utf-8") as f:
                    f.write(json.dumps(event.to_dict()) + "\n")
            except OSError as e:
                logger.error(f"Failed to write audit log {self.file_path}: {e}")

    async def get_events(
        self,
        resource_path: Optional[str] = None,
        event_type: Optional[str] = None,
        user_id: Optional[int] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[AuditEvent]:
        """Retrieve audit events from file with optional filtering"""
        events = []

        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                for line in f:
                    try:
                        event = AuditEvent.from_dict(json.loads(line.strip()))
                    except (json.JSONDecodeError, KeyError, ValueError):
                        logger.warning(f"Skipping malformed audit line in {self.file_path}")
                        continue

                    if _matches(event, resource_path, event_type, user_id, start_time, end_time):
                        events.append(event)

        except FileNotFoundError:
            # Nothing logged yet
            pass

        return events


def create_audit_logger(logger_type: str = "memory", **kwargs) -> AuditLogger:
    """
    Factory function to create audit loggers

    Args:
        logger_type: Type of logger ("memory" or "file")
        **kwargs: Additional arguments for the logger

    Returns:
        AuditLogger instance
    """
    if logger_type == "memory":
        return MemoryAuditLogger(kwargs.get("max_entries", 1000))
    elif logger_type == "file":
        return FileAuditLogger(kwargs.get("file_path", "audit.log"))
    else:
        raise ValueError(f"Unknown logger type: {logger_type}")
