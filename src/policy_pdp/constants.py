"""Application-wide constants for policy-pdp.

Constants that define engine behavior.
For user-configurable settings per deployment, see config.py.
"""

__all__ = [
    # Application identity
    "APP_NAME",
    # Default locations
    "DEFAULT_STATE_DIR",
    "DEFAULT_STATE_FILENAME",
    "DEFAULT_LOG_DIR",
    # Pattern matching
    "WILDCARD",
    # Condition evaluation
    "NUMERIC_TOLERANCE",
    "CONDITION_MAX_NESTING_DEPTH",
    "CONDITION_DEPTH_PENALTY",
    # Hierarchy
    "DEFAULT_MAX_POLICY_DEPTH",
    "MIN_POLICY_DEPTH",
    "MAX_POLICY_DEPTH",
    # Caching
    "DEFAULT_CACHE_TTL_SECONDS",
    "MIN_CACHE_TTL_SECONDS",
    "MAX_CACHE_TTL_SECONDS",
    "CACHE_KEY_POLICY",
    "CACHE_KEY_ROLE",
    "CACHE_KEY_USER_ROLES",
    "CACHE_KEY_USER_POLICIES",
    "CACHE_KEY_EVALUATION",
    # Validation
    "DEFAULT_MAX_CONDITION_COMPLEXITY",
    "MAX_CONDITION_COMPLEXITY_LIMIT",
    # Import/export
    "EXPORT_FORMAT_VERSION",
    # Reporting
    "REPORT_POLICY_STATS_LIMIT",
    # Metrics names
    "METRIC_EVALUATION_ALLOW",
    "METRIC_EVALUATION_DENY",
    "METRIC_EVALUATION_TIMER",
    # Identity used for system-initiated changes
    "SYSTEM_ACTOR",
]

from platformdirs import user_data_dir, user_log_dir

# ============================================================================
# Application Identity
# ============================================================================

# Application name used for directory names, logger names, etc.
APP_NAME: str = "policy-pdp"

# ============================================================================
# Default Locations
# ============================================================================

# Where the CLI keeps its JSON state snapshot when --state is not given.
# - macOS: ~/Library/Application Support/policy-pdp/
# - Linux: ~/.local/share/policy-pdp/
# - Windows: %LOCALAPPDATA%\policy-pdp\
DEFAULT_STATE_DIR: str = user_data_dir(APP_NAME)
DEFAULT_STATE_FILENAME: str = "state.json"

# Base directory for audit and system logs
DEFAULT_LOG_DIR: str = user_log_dir(APP_NAME)

# ============================================================================
# Pattern Matching
# ============================================================================

# A pattern consisting only of this character matches every value
WILDCARD: str = "*"

# ============================================================================
# Condition Evaluation
# ============================================================================

# Numeric literal conditions match when |attribute - literal| < tolerance
NUMERIC_TOLERANCE: float = 1e-4

# Complexity scoring: a node nested deeper than this scores the penalty flat
CONDITION_MAX_NESTING_DEPTH: int = 10
CONDITION_DEPTH_PENALTY: int = 100

# ============================================================================
# Policy Hierarchy
# ============================================================================

# Maximum number of policies returned when walking a parent chain.
# Deeper chains are silently truncated.
DEFAULT_MAX_POLICY_DEPTH: int = 10
MIN_POLICY_DEPTH: int = 1
MAX_POLICY_DEPTH: int = 100

# ============================================================================
# Caching
# ============================================================================

# TTL for cached policies, roles, per-user policy lists and decisions.
# This is also the staleness window after a mutation.
DEFAULT_CACHE_TTL_SECONDS: int = 300  # 5 minutes
MIN_CACHE_TTL_SECONDS: int = 0  # 0 disables caching
MAX_CACHE_TTL_SECONDS: int = 86400  # 1 day

# Cache key prefixes (format strings)
CACHE_KEY_POLICY: str = "policy:{policy_id}"
CACHE_KEY_ROLE: str = "role:{role_id}"
CACHE_KEY_USER_ROLES: str = "user:roles:{user_id}"
CACHE_KEY_USER_POLICIES: str = "user:policies:{user_id}"
# The request tuple is JSON-encoded; resources and user ids may contain ":"
CACHE_KEY_EVALUATION: str = "policy:eval:{request}"

# ============================================================================
# Validation
# ============================================================================

DEFAULT_MAX_CONDITION_COMPLEXITY: int = 20
MAX_CONDITION_COMPLEXITY_LIMIT: int = 1000

# ============================================================================
# Import/Export
# ============================================================================

EXPORT_FORMAT_VERSION: str = "1.0"

# ============================================================================
# Reporting
# ============================================================================

# Per-policy usage stats included in an effectiveness report
REPORT_POLICY_STATS_LIMIT: int = 10

# ============================================================================
# Metrics
# ============================================================================

METRIC_EVALUATION_ALLOW: str = "policy.evaluation.allow"
METRIC_EVALUATION_DENY: str = "policy.evaluation.deny"
METRIC_EVALUATION_TIMER: str = "policy.evaluation"

# ============================================================================
# Audit
# ============================================================================

# Recorded as created_by / assigned_by when no caller identity is supplied
SYSTEM_ACTOR: str = "system"
