"""Policy configuration, confirmation ledger and the decision engine."""

from toolgate.policy.config import DEFAULT_POLICY, PolicyStore
from toolgate.policy.engine import DecisionEngine
from toolgate.policy.ledger import ConfirmationLedger
from toolgate.policy.loader import load_policy, parse_policy

__all__ = [
    "DEFAULT_POLICY",
    "ConfirmationLedger",
    "DecisionEngine",
    "PolicyStore",
    "load_policy",
    "parse_policy",
]
