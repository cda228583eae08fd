"""RBAC core domain."""

from strataccess.core.rbac.policy import POLICY, Capability, Rule, authorize, check_capability

__all__ = [
    "Capability",
    "POLICY",
    "Rule",
    "authorize",
    "check_capability",
]
