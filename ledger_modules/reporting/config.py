"""
Reporting Configuration Schema.

Controls how period reports are computed: how many aggregate queries run
in parallel and who is recorded as having locked a snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Self

from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.reporting.config")


@dataclass
class ReportingConfig:
    """Configuration schema for the reporting module."""

    # Parallel aggregate queries per composite report
    max_workers: int = 4

    # Recorded on snapshots when the caller names nobody
    default_locked_by: str = "system"

    def __post_init__(self):
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if not self.default_locked_by:
            raise ValueError("default_locked_by cannot be empty")

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("reporting_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary."""
        logger.info(
            "reporting_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
