"""Database configuration and session management."""

from ledger_kernel.db.base import Base, TrackedBase
from ledger_kernel.db.engine import (
    READ_ONLY_EXECUTION_OPTIONS,
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_env,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "READ_ONLY_EXECUTION_OPTIONS",
    "Base",
    "TrackedBase",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_env",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
]
