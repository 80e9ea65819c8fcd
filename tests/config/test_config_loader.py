"""
Configuration set loading.

Verifies:
- The shipped default set loads and cross-validates
- Malformed YAML, missing roles and dangling account codes raise
  ConfigurationError
- The set name can come from the environment
- Seeding the chart of accounts is idempotent
"""

import shutil
from decimal import Decimal
from pathlib import Path

import pytest
import yaml
from sqlalchemy import func, select

import ledger_config.loader as loader
from ledger_config import CONFIG_SET_ENV, get_active_config, seed_chart_of_accounts
from ledger_kernel.exceptions import ConfigurationError
from ledger_kernel.models.account import Account

DEFAULT_SET_DIR = Path(loader.__file__).parent / "sets" / "default"


@pytest.fixture
def config_dir(tmp_path):
    """A writable copy of the default set under ``<tmp>/custom``."""
    shutil.copytree(DEFAULT_SET_DIR, tmp_path / "custom")
    return tmp_path


def _edit(path: Path, mutate) -> None:
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    mutate(data)
    path.write_text(yaml.safe_dump(data, allow_unicode=True), encoding="utf-8")


class TestDefaultSet:
    def test_loads(self, ledger_config):
        assert ledger_config.name == "default"
        assert len(ledger_config.checksum) == 64
        assert ledger_config.account("1400").is_member_tracked
        assert ledger_config.account("9999") is None

    def test_policy(self, policy):
        assert policy.roles.bank == "1200"
        assert policy.member_tracked_codes == ("1400", "2020")
        assert policy.clearing_codes == ("1210", "1220", "1230", "1240", "1250")
        assert policy.clearing_code_for("card") == "1220"
        assert policy.category("Students").income_code == "4090"
        assert policy.application_member_id("A-1") == "app:A-1"

    def test_stripe_schedule(self, policy):
        stripe = policy.processors["stripe"]
        assert (stripe.percentage, stripe.fixed_fee, stripe.vat_rate) == (
            Decimal("0.014"), Decimal("0.25"), Decimal("0.23"),
        )

    def test_cached(self):
        assert get_active_config("default") is get_active_config("default")

    def test_policy_is_read_only(self, policy):
        with pytest.raises(TypeError):
            policy.clearing_accounts["cash"] = "1100"


class TestInvalidSets:
    def test_custom_copy_loads(self, config_dir):
        config = get_active_config("custom", config_dir)
        assert config.name == "custom"

    def test_missing_set(self, tmp_path):
        with pytest.raises(ConfigurationError):
            get_active_config("nope", tmp_path)

    def test_malformed_yaml(self, config_dir):
        (config_dir / "custom" / loader.POLICY_FILE).write_text("roles: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError) as exc_info:
            get_active_config("custom", config_dir)
        assert "invalid YAML" in exc_info.value.reason

    def test_missing_role(self, config_dir):
        _edit(
            config_dir / "custom" / loader.POLICY_FILE,
            lambda d: d["roles"].pop("payment_on_account"),
        )
        with pytest.raises(ConfigurationError):
            get_active_config("custom", config_dir)

    def test_role_references_unknown_account(self, config_dir):
        _edit(
            config_dir / "custom" / loader.POLICY_FILE,
            lambda d: d["roles"].update(write_off="5999"),
        )
        with pytest.raises(ConfigurationError) as exc_info:
            get_active_config("custom", config_dir)
        assert "5999" in exc_info.value.reason

    def test_clearing_account_must_be_flagged(self, config_dir):
        _edit(
            config_dir / "custom" / loader.POLICY_FILE,
            lambda d: d["clearing_accounts"].update(cash="1100"),
        )
        with pytest.raises(ConfigurationError):
            get_active_config("custom", config_dir)

    def test_duplicate_account_code(self, config_dir):
        _edit(
            config_dir / "custom" / loader.CHART_OF_ACCOUNTS_FILE,
            lambda d: d["accounts"].append(dict(d["accounts"][0])),
        )
        with pytest.raises(ConfigurationError) as exc_info:
            get_active_config("custom", config_dir)
        assert "duplicate" in exc_info.value.reason

    def test_unknown_account_type(self, config_dir):
        _edit(
            config_dir / "custom" / loader.CHART_OF_ACCOUNTS_FILE,
            lambda d: d["accounts"][0].update(type="goodwill"),
        )
        with pytest.raises(ConfigurationError):
            get_active_config("custom", config_dir)


class TestEnvironment:
    def test_set_name_from_env(self, config_dir, monkeypatch):
        monkeypatch.setenv(CONFIG_SET_ENV, "custom")
        assert get_active_config(config_dir=config_dir).name == "custom"

    def test_trace_logged_once_per_set(self, config_dir, captured_logs):
        get_active_config("custom", config_dir)
        get_active_config("custom", config_dir)
        traces = [r for r in captured_logs() if r["message"] == "LEDGER_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["config_set"] == "custom"


class TestSeeding:
    def test_seed_is_idempotent(self, session, ledger_config):
        assert seed_chart_of_accounts(session, ledger_config) == 0
        count = session.scalar(select(func.count()).select_from(Account))
        assert count == len(ledger_config.accounts)
