"""Policy Decision Point (PDP) - access evaluation.

The evaluator and matcher are pure and side-effect free. The engine adds
caching, auditing and metrics around them through external collaborators.

Structure:
    decision.py       - Effect enum (Allow/Deny)
    policy.py         - Policy, role, assignment and delegation models
    conditions.py     - Attribute condition variants and evaluation
    matcher.py        - Resource/action glob matching
    evaluation.py     - Request context, trace and result models
    evaluator.py      - PolicyEvaluator (one policy, one request)
    engine.py         - AccessDecisionEngine (combining, cache, audit)
    protocol.py       - DecisionEngineProtocol for external engines

The engine is imported from policy_pdp.pdp.engine directly to avoid
circular imports with the catalog and aggregator.
"""

from policy_pdp.pdp.decision import Effect
from policy_pdp.pdp.evaluation import PolicyEvaluationContext, PolicyEvaluationResult, PolicyTrace
from policy_pdp.pdp.evaluator import PolicyEvaluator
from policy_pdp.pdp.policy import Policy, PolicyDefinition, Role, RoleDefinition
from policy_pdp.pdp.protocol import DecisionEngineProtocol

__all__ = [
    "DecisionEngineProtocol",
    "Effect",
    "Policy",
    "PolicyDefinition",
    "PolicyEvaluationContext",
    "PolicyEvaluationResult",
    "PolicyEvaluator",
    "PolicyTrace",
    "Role",
    "RoleDefinition",
]
