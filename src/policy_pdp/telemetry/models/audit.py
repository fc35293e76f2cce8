"""Pydantic models for audit log entries.

IMPORTANT: The 'time' field is Optional[str] = None because:
- Model instances are created WITHOUT timestamps (time=None)
- ISO8601Formatter adds the timestamp during log serialization
- Logged events ALWAYS have a 'time' field in ISO 8601 format
"""

from __future__ import annotations

__all__ = [
    "AuditAction",
    "AuditEvent",
]

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict


class AuditAction(str, Enum):
    """Action names written to the audit trail."""

    POLICY_CREATED = "policy.created"
    POLICY_UPDATED = "policy.updated"
    POLICY_DELETED = "policy.deleted"
    POLICY_EVALUATION = "policy.evaluation"
    POLICY_DELEGATED = "policy.delegated"
    POLICY_DELEGATION_REVOKED = "policy.delegation_revoked"
    POLICY_PARENT_SET = "policy.parent_set"
    POLICY_CONFLICT_RESOLVED = "policy.conflict_resolved"
    POLICY_IMPORTED = "policy.imported"
    ROLE_CREATED = "role.created"
    ROLE_UPDATED = "role.updated"
    ROLE_DELETED = "role.deleted"
    ROLE_POLICY_ATTACHED = "role.policy_attached"
    ROLE_POLICY_DETACHED = "role.policy_detached"
    USER_ROLE_ASSIGNED = "user.role_assigned"
    USER_ROLE_REMOVED = "user.role_removed"
    USER_POLICY_ASSIGNED = "user.policy_assigned"
    USER_POLICY_REMOVED = "user.policy_removed"
    GROUP_ROLE_ASSIGNED = "group.role_assigned"
    GROUP_ROLE_REMOVED = "group.role_removed"
    GROUP_POLICY_ASSIGNED = "group.policy_assigned"
    GROUP_POLICY_REMOVED = "group.policy_removed"
    GROUP_EVALUATION = "group.evaluation"
    TEMPLATE_CREATED = "template.created"


class AuditEvent(BaseModel):
    """One entry in decisions.jsonl.

    Attributes:
        time: Added by the formatter, never set by callers.
        action: What happened (an AuditAction value or a custom string).
        resource_type: Kind of entity acted upon ("Policy", "Role", "User", ...).
        resource_id: Id of the entity acted upon.
        before: Entity state before the change, when relevant.
        after: Entity state after the change, when relevant.
        metadata: Free-form details (decision latency, matched policy, ...).
    """

    time: str | None = None
    action: str
    resource_type: str
    resource_id: str
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None

    model_config = ConfigDict(frozen=True)
