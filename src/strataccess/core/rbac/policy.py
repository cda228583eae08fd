"""Role-based authorization policy.

The whole policy is the POLICY table below. Adding a role or a capability is
a table edit; ``authorize`` is the only evaluator.
"""

from enum import Enum
from uuid import UUID

from strataccess.core.auth.types import Principal, Role
from strataccess.core.outcomes import Allowed, Forbidden, ForbiddenReason


class Capability(str, Enum):
    """Actions a principal may ask to perform."""

    EDIT_STRATEGY = "edit_strategy"
    CREATE_STRATEGY = "create_strategy"
    EDIT_TACTIC = "edit_tactic"
    EDIT_ASSIGNED_TACTIC = "edit_assigned_tactic"
    CREATE_TACTIC = "create_tactic"
    WRITE_REPORT = "write_report"
    MANAGE_USERS = "manage_users"


class Rule(str, Enum):
    """How a role is treated for a capability."""

    ALLOW = "allow"
    DENY = "deny"
    OWNER = "owner"  # allowed only on resources the principal owns


POLICY: dict[Capability, dict[Role, Rule]] = {
    Capability.EDIT_STRATEGY: {
        Role.ADMINISTRATOR: Rule.ALLOW,
        Role.EXECUTIVE: Rule.ALLOW,
        Role.LEADER: Rule.DENY,
    },
    Capability.CREATE_STRATEGY: {
        Role.ADMINISTRATOR: Rule.ALLOW,
        Role.EXECUTIVE: Rule.ALLOW,
        Role.LEADER: Rule.DENY,
    },
    Capability.EDIT_TACTIC: {
        Role.ADMINISTRATOR: Rule.ALLOW,
        Role.EXECUTIVE: Rule.ALLOW,
        Role.LEADER: Rule.ALLOW,
    },
    Capability.EDIT_ASSIGNED_TACTIC: {
        Role.ADMINISTRATOR: Rule.ALLOW,
        Role.EXECUTIVE: Rule.ALLOW,
        Role.LEADER: Rule.OWNER,
    },
    Capability.CREATE_TACTIC: {
        Role.ADMINISTRATOR: Rule.ALLOW,
        Role.EXECUTIVE: Rule.ALLOW,
        Role.LEADER: Rule.DENY,
    },
    Capability.WRITE_REPORT: {
        Role.ADMINISTRATOR: Rule.ALLOW,
        Role.EXECUTIVE: Rule.ALLOW,
        Role.LEADER: Rule.ALLOW,
    },
    Capability.MANAGE_USERS: {
        Role.ADMINISTRATOR: Rule.ALLOW,
        Role.EXECUTIVE: Rule.DENY,
        Role.LEADER: Rule.DENY,
    },
}

# Every (capability, role) pair must have an entry
_missing = [(c, r) for c in Capability for r in Role if r not in POLICY.get(c, {})]
if _missing:
    raise RuntimeError(f"Authorization policy incomplete: {_missing}")


def authorize(role: Role, capability: Capability, is_owner: bool = False) -> bool:
    """Evaluate the policy table.

    Args:
        role: The principal's role.
        capability: Requested capability.
        is_owner: Whether the principal owns the target resource.

    Returns:
        True if the table allows the request.
    """
    rule = POLICY[capability][role]
    if rule is Rule.OWNER:
        return is_owner
    return rule is Rule.ALLOW


def check_capability(
    principal: Principal,
    capability: Capability,
    resource_owner_id: UUID | None = None,
) -> Allowed | Forbidden:
    """Authorize a principal against a capability.

    Ownership means the resource's assignee (for tactics, ``assigned_to``)
    is the principal.

    Args:
        principal: The authenticated caller.
        capability: Requested capability.
        resource_owner_id: Owner of the target resource, if it has one.

    Returns:
        Allowed, or Forbidden with reason ROLE.
    """
    is_owner = resource_owner_id is not None and resource_owner_id == principal.id
    if authorize(principal.role, capability, is_owner):
        return Allowed()
    return Forbidden(reason=ForbiddenReason.ROLE, capability=capability)
