"""Persistence for policies, roles, assignments, delegations and templates.

- protocol.py: PolicyStore protocol consumed by the engine
- graph.py: hydrated access graphs returned by the store
- memory.py: InMemoryPolicyStore reference implementation
- snapshot.py: JSON snapshot load/save for the in-memory store
"""

from policy_pdp.store.graph import GroupAccessGraph, RoleGrant, UserAccessGraph
from policy_pdp.store.memory import InMemoryPolicyStore
from policy_pdp.store.protocol import PolicyStore
from policy_pdp.store.snapshot import StateSnapshot, load_state, save_state

__all__ = [
    "GroupAccessGraph",
    "InMemoryPolicyStore",
    "PolicyStore",
    "RoleGrant",
    "StateSnapshot",
    "UserAccessGraph",
    "load_state",
    "save_state",
]
