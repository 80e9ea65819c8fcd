"""
ledger_config -- public entrypoint for ledger configuration.

Responsibility:
    ``get_active_config()`` is the way runtime code obtains the chart of
    accounts and the posting policy.  The set name comes from the argument,
    else the ``LEDGER_CONFIG_SET`` environment variable, else ``default``.
    Loaded sets are cached per (name, directory).

Architecture position:
    Configuration -- sits above ``ledger_kernel`` and below
    ``ledger_modules``.  The kernel never imports from here; the bridges
    below translate configuration into kernel inputs (guardrails, poster,
    seeded accounts).

Audit relevance:
    Every load emits a ``LEDGER_CONFIG_TRACE`` record with the set name,
    checksum and account count, tying postings to the configuration that
    governed them.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from sqlalchemy.orm import Session

from ledger_config.loader import load_config_set
from ledger_config.schema import (
    AccountDef,
    AccountRoles,
    CategoryDef,
    LedgerConfigSet,
    LedgerPolicy,
    ProcessorDef,
)
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.guardrails import Guardrail, default_guardrails
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.event_publisher import EventPublisher
from ledger_kernel.services.journal_poster import JournalPoster

logger = get_logger("config")

CONFIG_SET_ENV = "LEDGER_CONFIG_SET"
DEFAULT_CONFIG_SET = "default"
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

__all__ = [
    "AccountDef",
    "AccountRoles",
    "CategoryDef",
    "LedgerConfigSet",
    "LedgerPolicy",
    "ProcessorDef",
    "build_guardrails",
    "build_journal_poster",
    "get_active_config",
    "seed_chart_of_accounts",
]


@lru_cache(maxsize=8)
def _load_cached(name: str, config_dir: Path) -> LedgerConfigSet:
    config = load_config_set(config_dir / name)
    logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_set": config.name,
            "checksum": config.checksum,
            "policy_version": config.policy.version,
            "account_count": len(config.accounts),
        },
    )
    return config


def get_active_config(
    name: str | None = None,
    config_dir: Path | None = None,
) -> LedgerConfigSet:
    """
    Return the active configuration set.

    Raises:
        ConfigurationError: if the set is missing or invalid.
    """
    set_name = name or os.environ.get(CONFIG_SET_ENV) or DEFAULT_CONFIG_SET
    return _load_cached(set_name, (config_dir or _DEFAULT_CONFIG_DIR).resolve())


def build_guardrails(config: LedgerConfigSet) -> list[Guardrail]:
    """Guardrails for ``config``: the bank account comes from the policy roles."""
    return default_guardrails(config.policy.roles.bank)


def build_journal_poster(
    session: Session,
    config: LedgerConfigSet,
    clock: Clock | None = None,
    publisher: EventPublisher | None = None,
    extra_guardrails: list[Guardrail] | None = None,
) -> JournalPoster:
    """A JournalPoster wired with the configured guardrails and event metadata."""
    return JournalPoster(
        session,
        guardrails=build_guardrails(config) + list(extra_guardrails or ()),
        clock=clock,
        publisher=publisher,
        event_service=config.policy.event_service,
        event_version=config.policy.event_version,
    )


def seed_chart_of_accounts(session: Session, config: LedgerConfigSet) -> int:
    """Insert accounts missing from the database.  Returns the number added."""
    return AccountService(session).seed_accounts(config.account_infos())
