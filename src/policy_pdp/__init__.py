"""policy-pdp: attribute- and role-based Policy Decision Point.

Quick start:
    from policy_pdp import create_service, PolicyDefinition, PolicyEvaluationContext

    service = create_service()
    policy = await service.create_policy(
        PolicyDefinition(name="read-docs", resources=["documents/*"], actions=["read"])
    )
    await service.assign_policy_to_user("alice", policy.id)
    result = await service.evaluate_user_access(
        "alice", PolicyEvaluationContext(user_id="alice", resource="documents/a", action="read")
    )
"""

__version__ = "0.1.0"

from policy_pdp.config import ConflictResolution, PolicyEngineOptions
from policy_pdp.pdp.decision import Effect
from policy_pdp.pdp.evaluation import PolicyEvaluationContext, PolicyEvaluationResult
from policy_pdp.pdp.policy import Policy, PolicyDefinition, Role, RoleDefinition
from policy_pdp.service import PolicyEngineService, create_service

__all__ = [
    "ConflictResolution",
    "Effect",
    "Policy",
    "PolicyDefinition",
    "PolicyEngineOptions",
    "PolicyEngineService",
    "PolicyEvaluationContext",
    "PolicyEvaluationResult",
    "Role",
    "RoleDefinition",
    "__version__",
    "create_service",
]
