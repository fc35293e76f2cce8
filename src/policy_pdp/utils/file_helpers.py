"""Shared file utilities for policy-pdp.

Provides common utilities used by config and the state snapshot:
- set_secure_permissions: Secure file/directory permissions
- require_file_exists: Helpful FileNotFoundError
- load_validated_json: JSON read + Pydantic validation with readable errors
- atomic_write_text: Write-then-rename so readers never see partial files
"""

from __future__ import annotations

import json
import os
import sys
import tempfile
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, ValidationError

# Type variable for Pydantic models
T = TypeVar("T", bound=BaseModel)

__all__ = [
    "atomic_write_text",
    "format_validation_errors",
    "load_validated_json",
    "require_file_exists",
    "set_secure_permissions",
]


def set_secure_permissions(path: Path, *, is_directory: bool = False) -> None:
    """Set secure permissions on file or directory.

    Sets permissions to restrict access to owner only:
    - Directory: 0o700 (rwx------)
    - File: 0o600 (rw-------)

    Does nothing on Windows. Silently ignores permission errors
    (some systems don't allow permission changes).

    Args:
        path: Path to file or directory.
        is_directory: If True, use directory permissions (0o700).
    """
    if sys.platform == "win32":
        return

    try:
        mode = 0o700 if is_directory else 0o600
        path.chmod(mode)
    except OSError:
        pass  # Permission changes might fail on some systems


def require_file_exists(file_path: Path, file_type: str = "file", hint: str | None = None) -> None:
    """Raise FileNotFoundError with helpful message if file doesn't exist.

    Args:
        file_path: Path to check.
        file_type: Description for error message (e.g., "configuration", "state").
        hint: Optional recovery hint appended to the message.

    Raises:
        FileNotFoundError: If file doesn't exist.
    """
    if file_path.exists():
        return

    suffix = f"\n{hint}" if hint else ""
    raise FileNotFoundError(f"{file_type.capitalize()} file not found at {file_path}.{suffix}")


def format_validation_errors(error: ValidationError) -> list[str]:
    """Flatten a Pydantic ValidationError into "loc: msg" lines.

    Args:
        error: The ValidationError to flatten.

    Returns:
        One string per error, e.g. "policies.0.resources: List should have at least 1 item".
    """
    lines = []
    for item in error.errors():
        loc = ".".join(str(x) for x in item["loc"])
        lines.append(f"{loc}: {item['msg']}" if loc else item["msg"])
    return lines


def load_validated_json(
    file_path: Path,
    model_class: type[T],
    file_type: str = "file",
    recovery_hint: str | None = None,
) -> T:
    """Load JSON file and validate against Pydantic model.

    Combines file reading, JSON parsing, and Pydantic validation with
    consistent error messages.

    Args:
        file_path: Path to JSON file.
        model_class: Pydantic model class to validate against.
        file_type: Description for error messages (e.g., "config", "state").
        recovery_hint: Optional hint appended to validation errors.

    Returns:
        Validated Pydantic model instance.

    Raises:
        ValueError: If JSON is invalid or validation fails.
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {file_type} file {file_path}: {e}") from e
    except OSError as e:
        raise ValueError(f"Could not read {file_type} file {file_path}: {e}") from e

    try:
        return model_class.model_validate(data)
    except ValidationError as e:
        errors = [f"  - {line}" for line in format_validation_errors(e)]
        hint = f"\n\n{recovery_hint}" if recovery_hint else ""
        raise ValueError(f"Invalid {file_type} in {file_path}:\n" + "\n".join(errors) + hint) from e


def atomic_write_text(path: Path, content: str) -> None:
    """Write text to a file atomically.

    Uses atomic write pattern: write to temp file, then rename.
    This prevents file corruption if write fails midway.

    Creates parent directories if they don't exist.
    Sets secure permissions (0o700 on directory, 0o600 on file).

    Args:
        path: Destination file.
        content: Text to write.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    set_secure_permissions(path.parent, is_directory=True)

    # Same directory ensures rename is atomic (same filesystem)
    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}_", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        set_secure_permissions(Path(temp_path))
        os.replace(temp_path, path)

    except Exception:
        # Clean up temp file on failure
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise
