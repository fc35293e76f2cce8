"""Unit tests for the access decision engine.

Covers ordering and combining, default decisions, caching, auditing,
metrics, group evaluation and the permission listings.
"""

import pytest

from policy_pdp.config import PolicyEngineOptions
from policy_pdp.pdp.decision import Effect
from policy_pdp.pdp.engine import evaluation_cache_key, evaluation_order
from policy_pdp.pdp.policy import Policy, RoleDefinition
from policy_pdp.pdp.protocol import DecisionEngineProtocol


async def _grant(service, user_id, definition):
    policy = await service.create_policy(definition)
    await service.assign_policy_to_user(user_id, policy.id)
    return policy


# ============================================================================
# Tests: Ordering
# ============================================================================


class TestEvaluationOrder:
    """Tests for the priority/effect sort."""

    def test_priority_descending_deny_first_on_ties(self) -> None:
        """Given mixed priorities and effects, order is priority desc then Deny first."""
        # Arrange
        low = Policy(name="low", resources=["*"], actions=["*"], priority=1)
        allow = Policy(name="allow", resources=["*"], actions=["*"], priority=5)
        deny = Policy(name="deny", effect=Effect.DENY, resources=["*"], actions=["*"], priority=5)

        # Act
        ordered = evaluation_order([low, allow, deny])

        # Assert
        assert [p.name for p in ordered] == ["deny", "allow", "low"]


# ============================================================================
# Tests: User Access
# ============================================================================


class TestEvaluateUserAccess:
    """Tests for the core decision."""

    def test_engine_satisfies_protocol(self, service) -> None:
        """Given the built engine, it satisfies DecisionEngineProtocol."""
        # Act & Assert
        assert isinstance(service.engine, DecisionEngineProtocol)

    @pytest.mark.asyncio
    async def test_default_deny_when_nothing_matches(self, service, make_context) -> None:
        """Given no policies, the default decision denies."""
        # Act
        result = await service.evaluate_user_access("alice", make_context())

        # Assert
        assert result.is_allowed is False
        assert result.reason == "No matching policy found (default deny)"
        assert result.matched_policy_id is None
        assert result.evaluation_trace == []

    @pytest.mark.asyncio
    async def test_default_allow_when_configured(self, make_service, make_context) -> None:
        """Given default_deny_all=False, an unmatched request is allowed."""
        # Arrange
        service = make_service(
            PolicyEngineOptions(
                default_deny_all=False, policy_cache_ttl_seconds=0, evaluation_cache_ttl_seconds=0
            )
        )

        # Act
        result = await service.evaluate_user_access("alice", make_context())

        # Assert
        assert result.is_allowed is True
        assert result.reason == "No matching policy found (default allow)"

    @pytest.mark.asyncio
    async def test_matching_allow(self, service, make_definition, make_context) -> None:
        """Given a matching Allow policy, access is allowed and attributed."""
        # Arrange
        policy = await _grant(service, "alice", make_definition("read-docs"))

        # Act
        result = await service.evaluate_user_access("alice", make_context())

        # Assert
        assert result.is_allowed is True
        assert result.matched_policy_id == policy.id
        assert result.reason == "Allowed by policy 'read-docs'"

    @pytest.mark.asyncio
    async def test_deny_overrides_higher_priority_allow(
        self, service, make_definition, make_context
    ) -> None:
        """Given a high-priority Allow and a low-priority Deny, the Deny wins."""
        # Arrange
        await _grant(service, "alice", make_definition("allow-all", resources=["*"], priority=100))
        deny = await _grant(
            service, "alice", make_definition("deny-docs", effect="Deny", priority=1)
        )

        # Act
        result = await service.evaluate_user_access("alice", make_context())

        # Assert
        assert result.is_allowed is False
        assert result.matched_policy_id == deny.id
        assert result.applied_effect == Effect.DENY
        assert result.reason == "Denied by policy 'deny-docs'"
        assert [t.policy_name for t in result.evaluation_trace] == ["allow-all", "deny-docs"]

    @pytest.mark.asyncio
    async def test_deny_stops_evaluation(self, service, make_definition, make_context) -> None:
        """Given a matching Deny ahead of other policies, later policies are not traced."""
        # Arrange
        await _grant(service, "alice", make_definition("deny-first", effect="Deny", priority=10))
        await _grant(service, "alice", make_definition("allow-later", priority=1))

        # Act
        result = await service.evaluate_user_access("alice", make_context())

        # Assert
        assert [t.policy_name for t in result.evaluation_trace] == ["deny-first"]

    @pytest.mark.asyncio
    async def test_first_allow_in_order_is_reported(
        self, service, make_definition, make_context
    ) -> None:
        """Given two matching Allows, the higher-priority one is reported."""
        # Arrange
        await _grant(service, "alice", make_definition("low", priority=1))
        high = await _grant(service, "alice", make_definition("high", priority=9))

        # Act
        result = await service.evaluate_user_access("alice", make_context())

        # Assert
        assert result.matched_policy_id == high.id

    @pytest.mark.asyncio
    async def test_non_matching_policies_appear_in_trace(
        self, service, make_definition, make_context
    ) -> None:
        """Given a policy that fails its conditions, its failure is traced."""
        # Arrange
        await _grant(service, "alice", make_definition("eu-only", conditions={"region": "eu"}))

        # Act
        result = await service.evaluate_user_access("alice", make_context(region="us"))

        # Assert
        assert result.is_allowed is False
        assert result.evaluation_trace[0].failure_reason == "Conditions not met: region"

    @pytest.mark.asyncio
    async def test_context_user_is_replaced(self, service, make_definition, make_context) -> None:
        """Given a context for another user, evaluation uses the explicit user id."""
        # Arrange
        await _grant(service, "bob", make_definition("read-docs"))

        # Act
        result = await service.evaluate_user_access("bob", make_context(user_id="alice"))

        # Assert
        assert result.is_allowed is True

    @pytest.mark.asyncio
    async def test_decision_is_audited(
        self, service, make_definition, make_context, audit_sink
    ) -> None:
        """Given an evaluation, a policy.evaluation entry on the user is written."""
        # Arrange
        policy = await _grant(service, "alice", make_definition("read-docs"))

        # Act
        await service.evaluate_user_access("alice", make_context())

        # Assert
        entry = audit_sink.events[-1]
        assert entry["action"] == "policy.evaluation"
        assert entry["resource_type"] == "User"
        assert entry["resource_id"] == "alice"
        assert entry["after"]["allowed"] is True
        assert entry["after"]["matched_policy_id"] == policy.id
        assert entry["after"]["resource"] == "documents/report"

    @pytest.mark.asyncio
    async def test_matched_policies_are_counted(
        self, service, make_definition, make_context
    ) -> None:
        """Given a matched policy, its allow counter and timer are recorded."""
        # Arrange
        policy = await _grant(service, "alice", make_definition("read-docs"))

        # Act
        await service.evaluate_user_access("alice", make_context())
        await service.evaluate_user_access("alice", make_context())
        stats = await service.get_policy_usage_stats(policy.id)

        # Assert
        assert stats.allow_count == 2
        assert stats.deny_count == 0
        assert stats.evaluation_count == 2


class TestDecisionCaching:
    """Tests for the evaluation cache."""

    @pytest.mark.asyncio
    async def test_cached_decision_is_returned_until_ttl(
        self, make_service, make_definition, make_context, cache
    ) -> None:
        """Given a cached decision, a later revoke is not seen until the entry is dropped."""
        # Arrange
        service = make_service(PolicyEngineOptions())
        policy = await _grant(service, "alice", make_definition("read-docs"))
        first = await service.evaluate_user_access("alice", make_context())
        await service.remove_policy_from_user("alice", policy.id)

        # Act
        stale = await service.evaluate_user_access("alice", make_context())
        cache.clear()
        fresh = await service.evaluate_user_access("alice", make_context())

        # Assert
        assert first.is_allowed is True
        assert stale.is_allowed is True
        assert fresh.is_allowed is False

    @pytest.mark.asyncio
    async def test_cache_key_includes_resource_and_action(
        self, make_service, make_definition, make_context
    ) -> None:
        """Given a cached allow for one action, another action is decided separately."""
        # Arrange
        service = make_service(PolicyEngineOptions())
        await _grant(service, "alice", make_definition("read-docs"))
        await service.evaluate_user_access("alice", make_context())

        # Act
        result = await service.evaluate_user_access("alice", make_context(action="write"))

        # Assert
        assert result.is_allowed is False

    @pytest.mark.asyncio
    async def test_colon_in_user_and_resource_does_not_share_entry(
        self, make_service, make_definition, make_context
    ) -> None:
        """Given ids containing ":", a cached allow does not leak to another user."""
        # Arrange
        service = make_service(PolicyEngineOptions())
        await _grant(service, "u", make_definition("devices", resources=["device:*"]))
        first = await service.evaluate_user_access("u", make_context(resource="device:1"))

        # Act
        other = await service.evaluate_user_access("u:device", make_context(resource="1"))

        # Assert
        assert first.is_allowed is True
        assert other.is_allowed is False
        assert other.reason == "No matching policy found (default deny)"

    def test_cache_keys_differ_for_distinct_tuples(self) -> None:
        """Given tuples that join to the same string, their keys still differ."""
        # Act
        a = evaluation_cache_key("u", "device:1", "read")
        b = evaluation_cache_key("u:device", "1", "read")

        # Assert
        assert a != b


# ============================================================================
# Tests: Other Decisions
# ============================================================================


class TestEvaluatePolicyById:
    """Tests for evaluating one policy by id."""

    @pytest.mark.asyncio
    async def test_unknown_policy(self, service, make_context) -> None:
        """Given an unknown id, access is denied with "Policy not found"."""
        # Act
        result = await service.evaluate_policy("missing", make_context())

        # Assert
        assert result.is_allowed is False
        assert result.reason == "Policy not found"

    @pytest.mark.asyncio
    async def test_known_policy(self, service, make_definition, make_context) -> None:
        """Given a matching policy id, its effect decides."""
        # Arrange
        policy = await service.create_policy(make_definition("deny-docs", effect="Deny"))

        # Act
        result = await service.evaluate_policy(policy.id, make_context())

        # Assert
        assert result.is_allowed is False
        assert result.matched_policy_id == policy.id


class TestEvaluateGroupAccess:
    """Tests for group decisions."""

    @pytest.mark.asyncio
    async def test_group_policies_and_roles_combine(
        self, service, make_definition, make_context, audit_sink
    ) -> None:
        """Given a group Allow via role and a direct group Deny, the Deny wins."""
        # Arrange
        allow = await service.create_policy(make_definition("allow-docs"))
        deny = await service.create_policy(make_definition("deny-docs", effect="Deny"))
        role = await service.create_role(RoleDefinition(name="readers", policy_ids=[allow.id]))
        await service.assign_role_to_group("eng", role.id)
        await service.assign_policy_to_group("eng", deny.id)

        # Act
        result = await service.evaluate_group_access("eng", make_context())

        # Assert
        assert result.is_allowed is False
        assert result.matched_policy_id == deny.id
        assert audit_sink.events[-1]["action"] == "group.evaluation"

    @pytest.mark.asyncio
    async def test_empty_group_is_default_denied(self, service, make_context) -> None:
        """Given a group with nothing assigned, the default decision applies."""
        # Act
        result = await service.evaluate_group_access("nobody", make_context())

        # Assert
        assert result.is_allowed is False


class TestBulkEvaluate:
    """Tests for evaluating many users at once."""

    @pytest.mark.asyncio
    async def test_each_user_is_decided(self, service, make_definition, make_context) -> None:
        """Given two users with different grants, each gets their own decision."""
        # Arrange
        await _grant(service, "alice", make_definition("read-docs"))

        # Act
        results = await service.bulk_evaluate(["alice", "bob", "alice"], make_context())

        # Assert
        assert set(results) == {"alice", "bob"}
        assert results["alice"].is_allowed is True
        assert results["bob"].is_allowed is False


# ============================================================================
# Tests: Permission Listings
# ============================================================================


class TestAllowedActions:
    """Tests for get_allowed_actions."""

    @pytest.mark.asyncio
    async def test_deny_subtracts_allowed_actions(self, service, make_definition) -> None:
        """Given Allow read/write and Deny write, only read remains."""
        # Arrange
        await _grant(service, "alice", make_definition("rw", actions=["read", "write"]))
        await _grant(service, "alice", make_definition("no-write", effect="Deny", actions=["write"]))

        # Act
        actions = await service.get_allowed_actions("alice", "documents/report")

        # Assert
        assert actions == ["read"]

    @pytest.mark.asyncio
    async def test_deny_subtracts_regardless_of_priority(self, service, make_definition) -> None:
        """Given a low-priority Deny after a high-priority Allow, the action is still removed."""
        # Arrange
        await _grant(service, "alice", make_definition("rw", actions=["read", "write"], priority=50))
        await _grant(
            service, "alice", make_definition("no-write", effect="Deny", actions=["write"], priority=1)
        )

        # Act
        actions = await service.get_allowed_actions("alice", "documents/report")

        # Assert
        assert actions == ["read"]

    @pytest.mark.asyncio
    async def test_inactive_and_unrelated_policies_ignored(self, service, make_definition) -> None:
        """Given inactive and non-matching-resource policies, they contribute nothing."""
        # Arrange
        inactive = await _grant(service, "alice", make_definition("off", actions=["delete"]))
        await service.set_policy_active(inactive.id, False)
        await _grant(service, "alice", make_definition("images", resources=["images/*"], actions=["upload"]))

        # Act
        actions = await service.get_allowed_actions("alice", "documents/report")

        # Assert
        assert actions == []

    @pytest.mark.asyncio
    async def test_conditions_are_not_consulted(self, service, make_definition) -> None:
        """Given a conditional Allow, its actions are listed regardless of attributes."""
        # Arrange
        await _grant(service, "alice", make_definition("eu-read", conditions={"region": "eu"}))

        # Act
        actions = await service.get_allowed_actions("alice", "documents/report")

        # Assert
        assert actions == ["read"]


class TestAccessibleResources:
    """Tests for get_accessible_resources."""

    @pytest.mark.asyncio
    async def test_allow_patterns_are_returned(self, service, make_definition) -> None:
        """Given Allow policies for an action, their resource patterns are listed."""
        # Arrange
        await _grant(service, "alice", make_definition("docs", resources=["documents/*"]))
        await _grant(service, "alice", make_definition("imgs", resources=["images/*"]))
        await _grant(service, "alice", make_definition("other", resources=["logs/*"], actions=["write"]))

        # Act
        resources = await service.get_accessible_resources("alice", "read")

        # Assert
        assert resources == ["documents/*", "images/*"]

    @pytest.mark.asyncio
    async def test_verbatim_deny_pattern_is_removed(self, service, make_definition) -> None:
        """Given a Deny listing the same pattern, that pattern is removed."""
        # Arrange
        await _grant(service, "alice", make_definition("docs", resources=["documents/*", "images/*"]))
        await _grant(service, "alice", make_definition("no-imgs", effect="Deny", resources=["images/*"]))

        # Act
        resources = await service.get_accessible_resources("alice", "read")

        # Assert
        assert resources == ["documents/*"]
