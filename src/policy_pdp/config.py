"""Application configuration for policy-pdp.

Defines configuration models for the policy engine and logging. Deployments
embed PolicyEngineOptions directly; the CLI loads a full AppConfig from a
JSON file (``--config``) or falls back to defaults.

Example usage:
    # Load from config file
    config = AppConfig.load_from_files(config_path)

    # Save new configuration
    config.save_to_file(config_path)
"""

from __future__ import annotations

__all__ = [
    "AppConfig",
    "ConflictResolution",
    "LoggingConfig",
    "PolicyEngineOptions",
]

import json
from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from policy_pdp.constants import (
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_LOG_DIR,
    DEFAULT_MAX_CONDITION_COMPLEXITY,
    DEFAULT_MAX_POLICY_DEPTH,
    MAX_CACHE_TTL_SECONDS,
    MAX_CONDITION_COMPLEXITY_LIMIT,
    MAX_POLICY_DEPTH,
    MIN_CACHE_TTL_SECONDS,
    MIN_POLICY_DEPTH,
)
from policy_pdp.utils.file_helpers import (
    load_validated_json,
    require_file_exists,
    set_secure_permissions,
)


class ConflictResolution(str, Enum):
    """Strategies that can be recorded against a detected conflict.

    Evaluation itself always applies deny-overrides-allow; the other
    strategies document how an administrator chose to settle a conflict.
    """

    HIGHER_PRIORITY_WINS = "higher_priority_wins"
    DENY_OVERRIDES_ALLOW = "deny_overrides_allow"
    ALLOW_OVERRIDES_DENY = "allow_overrides_deny"
    MANUAL = "manual"


# =============================================================================
# Policy Engine Configuration
# =============================================================================


class PolicyEngineOptions(BaseModel):
    """Behavior switches for the policy decision point.

    Attributes:
        enable_policy_inheritance: Include ancestor policies of every
            effective policy that has a parent.
        default_deny_all: Decision when no policy matches. True denies.
        max_policy_depth: Maximum entries returned by a hierarchy walk.
            Longer chains are truncated silently.
        policy_cache_ttl_seconds: TTL for cached policies, roles and
            per-user policy lists (0 disables).
        evaluation_cache_ttl_seconds: TTL for cached access decisions
            (0 disables).
        enable_policy_validation: Enforce max_condition_complexity.
        max_condition_complexity: Upper bound on the condition complexity score.
        allow_wildcard_resources: Permit "*" in resource patterns.
        allow_wildcard_actions: Permit "*" in action patterns.
        enable_policy_auditing: Emit audit entries for decisions and mutations.
        conflict_resolution: Strategy recorded when resolving a conflict
            without an explicit choice.
    """

    enable_policy_inheritance: bool = True
    default_deny_all: bool = True
    max_policy_depth: int = Field(
        default=DEFAULT_MAX_POLICY_DEPTH,
        ge=MIN_POLICY_DEPTH,
        le=MAX_POLICY_DEPTH,
    )
    policy_cache_ttl_seconds: int = Field(
        default=DEFAULT_CACHE_TTL_SECONDS,
        ge=MIN_CACHE_TTL_SECONDS,
        le=MAX_CACHE_TTL_SECONDS,
    )
    evaluation_cache_ttl_seconds: int = Field(
        default=DEFAULT_CACHE_TTL_SECONDS,
        ge=MIN_CACHE_TTL_SECONDS,
        le=MAX_CACHE_TTL_SECONDS,
    )
    enable_policy_validation: bool = True
    max_condition_complexity: int = Field(
        default=DEFAULT_MAX_CONDITION_COMPLEXITY,
        ge=1,
        le=MAX_CONDITION_COMPLEXITY_LIMIT,
    )
    allow_wildcard_resources: bool = True
    allow_wildcard_actions: bool = True
    enable_policy_auditing: bool = True
    conflict_resolution: ConflictResolution = ConflictResolution.DENY_OVERRIDES_ALLOW

    model_config = ConfigDict(frozen=True)


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging configuration settings.

    Logs are stored under log_dir with this structure:
        <log_dir>/
        ├── system/
        │   └── system.jsonl        # WARNING and above
        └── audit/
            └── decisions.jsonl     # Decisions and mutations (always enabled)

    Attributes:
        log_dir: Base directory for logs. Platform-specific default.
        log_level: Console logging level for the system logger.
    """

    log_dir: str = Field(default=DEFAULT_LOG_DIR, min_length=1)
    log_level: Literal["DEBUG", "INFO", "WARNING"] = "INFO"

    @property
    def audit_log_path(self) -> Path:
        """Path of the audit JSONL file."""
        return Path(self.log_dir).expanduser() / "audit" / "decisions.jsonl"

    @property
    def system_log_path(self) -> Path:
        """Path of the system JSONL file."""
        return Path(self.log_dir).expanduser() / "system" / "system.jsonl"


class AppConfig(BaseModel):
    """Main application configuration for policy-pdp.

    Attributes:
        engine: Policy engine behavior switches.
        logging: Logging configuration (log level, paths).
    """

    engine: PolicyEngineOptions = Field(default_factory=PolicyEngineOptions)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"extra": "ignore"}  # Ignore unknown fields for forward compat

    def save_to_file(self, config_path: Path) -> None:
        """Save configuration to JSON file.

        Creates parent directories if they don't exist.
        Sets secure permissions (0o700) on the config directory.

        Args:
            config_path: Path where the config JSON file should be saved.
        """
        config_path.parent.mkdir(parents=True, exist_ok=True)
        set_secure_permissions(config_path.parent, is_directory=True)

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2)
            f.write("\n")

        set_secure_permissions(config_path)

    @classmethod
    def load_from_files(cls, config_path: Path) -> "AppConfig":
        """Load configuration from JSON file.

        Args:
            config_path: Path to the config JSON file.

        Returns:
            AppConfig instance with loaded configuration.

        Raises:
            FileNotFoundError: If config file doesn't exist.
            ValueError: If config file is invalid or missing required fields.
        """
        require_file_exists(config_path, file_type="configuration")
        return load_validated_json(
            config_path,
            cls,
            file_type="config",
            recovery_hint="Fix the config file or omit --config to use defaults.",
        )
