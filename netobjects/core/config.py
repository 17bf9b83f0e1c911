"""
Configuration module for netobjects.

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.
"""

from dataclasses import dataclass, fields, asdict
from typing import Any, Dict
import logging

from ..util.config import (
    get_config_value, load_config_file, merge_configs, validate_config
)


LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

_SCHEMA = {
    'audit_enabled': {'type': bool},
    'audit_max_entries': {'type': int, 'min': 1},
    'metrics_enabled': {'type': bool},
    'verify_evaluators': {'type': bool},
    'log_level': {'type': str, 'choices': LOG_LEVELS},
}


@dataclass
class Config:
    """Configuration for the request orchestrator and its ambient services"""
    audit_enabled: bool = True
    audit_max_entries: int = 1000
    metrics_enabled: bool = True
    # Run find_narrowing_violations over the samples given to the orchestrator at startup
    verify_evaluators: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from NETOBJECTS_* environment variables"""
        return cls(
            audit_enabled=get_config_value("audit_enabled", True, bool),
            audit_max_entries=get_config_value("audit_max_entries", 1000, int),
            metrics_enabled=get_config_value("metrics_enabled", True, bool),
            verify_evaluators=get_config_value("verify_evaluators", False, bool),
            log_level=get_config_value("log_level", "INFO", str).upper(),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_file(cls, file_path: str) -> "Config":
        """Load configuration from a JSON or YAML file, on top of the defaults"""
        return cls.from_dict(merge_configs(asdict(cls()), load_config_file(file_path)))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def validate(self) -> bool:
        """Validate the configuration"""
        errors = validate_config(self.to_dict(), _SCHEMA)
        if errors:
            raise ValueError("; ".join(errors))
        return True

    def apply_logging(self) -> None:
        """Set the package logger level"""
        logging.getLogger("netobjects").setLevel(self.log_level)
