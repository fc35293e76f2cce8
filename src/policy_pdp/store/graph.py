"""Hydrated access graphs.

A store answers "what can this principal reach?" in one call, returning
policies already resolved from their ids. Dangling references (an
assignment to a deleted policy) are dropped during hydration.
"""

from __future__ import annotations

__all__ = [
    "DelegatedGrant",
    "DirectGrant",
    "GroupAccessGraph",
    "RoleGrant",
    "UserAccessGraph",
]

from pydantic import BaseModel, ConfigDict, Field

from policy_pdp.pdp.policy import Policy, PolicyDelegation, Role, UserPolicyAssignment


class RoleGrant(BaseModel):
    """A role together with its resolved policies."""

    role: Role
    policies: list[Policy] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class DirectGrant(BaseModel):
    """A user policy assignment together with its resolved policy."""

    assignment: UserPolicyAssignment
    policy: Policy

    model_config = ConfigDict(frozen=True)


class DelegatedGrant(BaseModel):
    """A delegation received by a user together with its resolved policy."""

    delegation: PolicyDelegation
    policy: Policy

    model_config = ConfigDict(frozen=True)


class GroupAccessGraph(BaseModel):
    """Everything granted to a group."""

    group_id: str
    direct_policies: list[Policy] = Field(default_factory=list)
    roles: list[RoleGrant] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def all_policies(self) -> list[Policy]:
        """Direct policies, then role policies (duplicates included)."""
        policies = list(self.direct_policies)
        for grant in self.roles:
            policies.extend(grant.policies)
        return policies


class UserAccessGraph(BaseModel):
    """Everything granted to a user, directly or through groups and delegations.

    Expiry and delegation windows are NOT applied here; the aggregator
    filters by time.
    """

    user_id: str
    direct: list[DirectGrant] = Field(default_factory=list)
    roles: list[RoleGrant] = Field(default_factory=list)
    groups: list[GroupAccessGraph] = Field(default_factory=list)
    delegations_received: list[DelegatedGrant] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)
