"""Tests for the policy store, policy file loader and confirmation ledger."""

import json

import pytest
from pydantic import ValidationError

from toolgate.core.models import ConfirmationMode, PolicyConfig
from toolgate.exceptions import ConfigurationError
from toolgate.policy.config import DEFAULT_POLICY, PolicyStore
from toolgate.policy.ledger import ConfirmationLedger
from toolgate.policy.loader import load_policy, parse_policy


class TestDefaultPolicy:
    def test_defaults(self):
        assert DEFAULT_POLICY.deny_network is True
        assert DEFAULT_POLICY.default_confirmation == ConfirmationMode.ONCE
        assert ".env" in DEFAULT_POLICY.path_denylist
        assert "rm" in DEFAULT_POLICY.command_denylist
        assert "pytest" in DEFAULT_POLICY.command_allowlist


class TestPolicyStore:
    def setup_method(self):
        self.store = PolicyStore()

    def test_starts_with_defaults(self):
        assert self.store.current() == DEFAULT_POLICY

    def test_partial_update_keeps_other_fields(self):
        updated = self.store.update({"deny_network": False})
        assert updated.deny_network is False
        assert updated.command_denylist == DEFAULT_POLICY.command_denylist

    def test_keyword_update(self):
        self.store.update(max_file_size=10)
        assert self.store.current().max_file_size == 10

    def test_current_is_snapshot(self):
        snapshot = self.store.current()
        snapshot.command_denylist.append("python")
        assert "python" not in self.store.current().command_denylist

    def test_defaults_not_mutated(self):
        self.store.update(path_denylist=["only/"])
        assert ".env" in DEFAULT_POLICY.path_denylist

    def test_invalid_update_rejected_and_unchanged(self):
        with pytest.raises(ValidationError):
            self.store.update(max_file_size="huge")
        with pytest.raises(ValidationError):
            self.store.update(not_a_field=True)
        assert self.store.current() == DEFAULT_POLICY

    def test_custom_initial_config(self):
        store = PolicyStore(PolicyConfig(deny_network=False))
        assert store.current().deny_network is False


class TestPolicyLoader:
    def test_parse_top_level_yaml(self):
        config = parse_policy("deny_network: false\ncommand_allowlist: [pytest]\n")
        assert config.deny_network is False
        assert config.command_allowlist == ["pytest"]

    def test_parse_policy_section(self):
        raw = "name: my-assistant\npolicy:\n  path_denylist: ['.env']\n"
        config = parse_policy(raw)
        assert config.path_denylist == [".env"]

    def test_parse_json(self):
        config = parse_policy(json.dumps({"max_file_size": 42}), format="json")
        assert config.max_file_size == 42

    def test_syntax_error(self):
        with pytest.raises(ConfigurationError, match="cannot parse"):
            parse_policy("deny_network: [unclosed", source="bad.yaml")

    def test_empty_file(self):
        with pytest.raises(ConfigurationError, match="empty"):
            parse_policy("")

    def test_not_a_mapping(self):
        with pytest.raises(ConfigurationError, match="mapping"):
            parse_policy("- a\n- b\n")

    def test_unknown_key_is_fatal(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_policy("deny_netwrok: true\n", source="typo.yaml")
        assert exc_info.value.source == "typo.yaml"
        assert exc_info.value.details["errors"]

    def test_wrong_type_is_fatal(self):
        with pytest.raises(ConfigurationError):
            parse_policy("max_file_size: lots\n")

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text("deny_network: false\n")
        assert load_policy(path).deny_network is False

    def test_load_json_by_suffix(self, tmp_path):
        path = tmp_path / "policy.json"
        path.write_text('{"command_denylist": ["curl"]}')
        assert load_policy(path).command_denylist == ["curl"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="cannot read"):
            load_policy(tmp_path / "missing.yaml")


class TestConfirmationLedger:
    def setup_method(self):
        self.ledger = ConfirmationLedger()

    def test_not_approved_by_default(self):
        assert not self.ledger.is_approved("run", "u1")

    def test_approve(self):
        self.ledger.approve("run", "u1")
        assert self.ledger.is_approved("run", "u1")
        assert not self.ledger.is_approved("run", "u2")
        assert not self.ledger.is_approved("edit", "u1")

    def test_approve_idempotent(self):
        self.ledger.approve("run", "u1")
        self.ledger.approve("run", "u1")
        assert self.ledger.approved_tools("u1") == {"run"}

    def test_reject(self):
        self.ledger.approve("run", "u1")
        self.ledger.reject("run", "u1")
        assert not self.ledger.is_approved("run", "u1")

    def test_reject_unknown_is_noop(self):
        self.ledger.reject("run", "nobody")
        assert self.ledger.approved_tools("nobody") == set()

    def test_clear_all(self):
        self.ledger.approve("run", "u1")
        self.ledger.approve("edit", "u1")
        self.ledger.approve("run", "u2")
        self.ledger.clear_all("u1")
        assert self.ledger.approved_tools("u1") == set()
        assert self.ledger.is_approved("run", "u2")
