"""Shared test fixtures for the toolgate test suite."""

import pytest

from toolgate.audit.log import AuditLog
from toolgate.core.models import (
    ConfirmationMode,
    EvaluationContext,
    RiskClass,
    ToolMetadata,
    ToolScope,
)
from toolgate.gate import PolicyGate
from toolgate.policy.config import PolicyStore
from toolgate.policy.engine import DecisionEngine
from toolgate.policy.ledger import ConfirmationLedger
from toolgate.tools.catalog import default_registry


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def policy():
    return PolicyStore()


@pytest.fixture
def ledger():
    return ConfirmationLedger()


@pytest.fixture
def engine(registry, policy, ledger):
    return DecisionEngine(registry, policy, ledger)


@pytest.fixture
def audit_log(tmp_path):
    log = AuditLog(db_url=":memory:", log_dir=tmp_path / "logs")
    yield log
    log.close()


@pytest.fixture
def gate(audit_log):
    return PolicyGate(audit=audit_log)


@pytest.fixture
def user_ctx():
    return EvaluationContext(user_id="u1", project_id="repo")


@pytest.fixture
def network_tool():
    return ToolMetadata(
        name="http_fetch",
        risk_class=RiskClass.NETWORK,
        description="Fetch a URL",
        confirmation=ConfirmationMode.NONE,
    )


@pytest.fixture
def sized_read_tool():
    return ToolMetadata(
        name="tiny_read",
        risk_class=RiskClass.READ,
        description="Read small files only",
        scope=ToolScope(max_file_size=16),
    )
