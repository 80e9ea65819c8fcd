"""
Configuration loader (``ledger_config.loader``).

Responsibility
--------------
Reads the YAML files of one configuration set and parses them into the
frozen dataclasses of ``ledger_config.schema``.  Cross-file validation
(every role and clearing code exists in the chart of accounts, member
tracked roles are flagged as such) happens here, so a set that loads is
a set the posting engine can use.

Failure modes
-------------
* Missing directory or file -> ``ConfigurationError``.
* Malformed YAML -> ``ConfigurationError`` wrapping ``yaml.YAMLError``.
* Missing required keys or unknown account types -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from ledger_config.schema import (
    AccountDef,
    AccountRoles,
    CategoryDef,
    LedgerConfigSet,
    LedgerPolicy,
    ProcessorDef,
)
from ledger_kernel.exceptions import ConfigurationError
from ledger_kernel.models.account import AccountType

CHART_OF_ACCOUNTS_FILE = "chart_of_accounts.yaml"
POLICY_FILE = "ledger_policy.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        ConfigurationError: if the file is missing, unreadable or not a mapping.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as exc:
        raise ConfigurationError(str(path), "file not found") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(str(path), f"invalid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def compute_checksum(*documents: dict[str, Any]) -> str:
    """Deterministic SHA-256 over the raw documents of a set."""
    canonical = json.dumps(documents, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _decimal(value: Any, source: str, name: str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ConfigurationError(source, f"{name} is not a number: {value!r}") from exc


def parse_account(data: dict[str, Any], source: str) -> AccountDef:
    """Parse one ``accounts`` entry."""
    try:
        code = str(data["code"])
        account_type = AccountType(data["type"]).value
        description = data["description"]
    except KeyError as exc:
        raise ConfigurationError(source, f"account entry missing {exc.args[0]!r}") from exc
    except ValueError as exc:
        raise ConfigurationError(source, f"account {data.get('code')}: {exc}") from exc
    return AccountDef(
        code=code,
        description=description,
        account_type=account_type,
        is_cash=bool(data.get("is_cash", False)),
        is_clearing=bool(data.get("is_clearing", False)),
        is_member_tracked=bool(data.get("is_member_tracked", False)),
        is_revenue=bool(data.get("is_revenue", False)),
        is_contra_revenue=bool(data.get("is_contra_revenue", False)),
    )


def parse_accounts(data: dict[str, Any], source: str) -> tuple[AccountDef, ...]:
    accounts = tuple(parse_account(entry, source) for entry in data.get("accounts", []))
    codes = [a.code for a in accounts]
    duplicates = sorted({c for c in codes if codes.count(c) > 1})
    if duplicates:
        raise ConfigurationError(source, f"duplicate account codes: {', '.join(duplicates)}")
    if not accounts:
        raise ConfigurationError(source, "no accounts defined")
    return accounts


def parse_policy(data: dict[str, Any], source: str) -> LedgerPolicy:
    """Parse ``ledger_policy.yaml``."""
    try:
        roles_data = data["roles"]
        roles = AccountRoles(**{k: str(v) for k, v in roles_data.items()})
    except KeyError as exc:
        raise ConfigurationError(source, f"missing {exc.args[0]!r}") from exc
    except TypeError as exc:
        raise ConfigurationError(source, f"roles: {exc}") from exc

    clearing = {str(k): str(v) for k, v in data.get("clearing_accounts", {}).items()}

    processors = {}
    for name, p in (data.get("processors") or {}).items():
        if p.get("clearing") not in clearing:
            raise ConfigurationError(
                source, f"processor {name}: unknown clearing method {p.get('clearing')!r}"
            )
        processors[name] = ProcessorDef(
            name=name,
            clearing=p["clearing"],
            percentage=_decimal(p.get("percentage", "0"), source, f"{name}.percentage"),
            fixed_fee=_decimal(p.get("fixed_fee", "0"), source, f"{name}.fixed_fee"),
            vat_rate=_decimal(p.get("vat_rate", "0"), source, f"{name}.vat_rate"),
        )

    categories = tuple(
        CategoryDef(name=c["name"], income_code=str(c["income_code"]))
        for c in data.get("categories", [])
    )
    events = data.get("events", {})

    return LedgerPolicy(
        version=int(data.get("version", 1)),
        roles=roles,
        clearing_accounts=MappingProxyType(clearing),
        application_prefix=data.get("application_prefix", "app:"),
        adjustment_types=tuple(data.get("adjustment_types", ())),
        processors=MappingProxyType(processors),
        categories=categories,
        event_service=events.get("service", "ledger-core"),
        event_version=str(events.get("version", "1.0")),
    )


def validate_config_set(config: LedgerConfigSet) -> None:
    """
    Cross-check policy against the chart of accounts.

    Raises:
        ConfigurationError: on a dangling code or a mis-flagged role account.
    """
    by_code = {a.code: a for a in config.accounts}
    policy = config.policy
    referenced = {
        **{f"roles.{k}": v for k, v in vars(policy.roles).items()},
        **{f"clearing_accounts.{k}": v for k, v in policy.clearing_accounts.items()},
        **{f"categories.{c.name}": c.income_code for c in policy.categories},
    }
    for name, code in referenced.items():
        if code not in by_code:
            raise ConfigurationError(config.name, f"{name} references unknown account {code}")

    for code in policy.member_tracked_codes:
        if not by_code[code].is_member_tracked:
            raise ConfigurationError(config.name, f"account {code} must be member-tracked")
    for code in policy.clearing_codes:
        if not by_code[code].is_clearing:
            raise ConfigurationError(config.name, f"account {code} must be a clearing account")


def load_config_set(directory: Path) -> LedgerConfigSet:
    """Load, parse and validate the configuration set in ``directory``."""
    if not directory.is_dir():
        raise ConfigurationError(str(directory), "configuration set not found")

    coa_path = directory / CHART_OF_ACCOUNTS_FILE
    policy_path = directory / POLICY_FILE
    coa_doc = load_yaml_file(coa_path)
    policy_doc = load_yaml_file(policy_path)

    config = LedgerConfigSet(
        name=directory.name,
        checksum=compute_checksum(coa_doc, policy_doc),
        accounts=parse_accounts(coa_doc, str(coa_path)),
        policy=parse_policy(policy_doc, str(policy_path)),
    )
    validate_config_set(config)
    return config
