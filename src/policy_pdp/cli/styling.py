"""CLI output styling utilities.

Visual language of the pdp commands:
- Cyan bold for section headers and labels
- Green for success and Allow, red for errors and Deny
- Yellow for validation warnings
- Dim for empty-state messages and secondary detail
"""

from __future__ import annotations

__all__ = [
    "style_decision",
    "style_dim",
    "style_effect",
    "style_error",
    "style_header",
    "style_label",
    "style_success",
    "style_warning",
]

import click

from policy_pdp.pdp.decision import Effect


def style_header(title: str) -> str:
    """Style a section header with dashes.

    Example:
        >>> click.echo(style_header("Conflicts"))
        --- Conflicts ---
    """
    return click.style(f"--- {title} ---", fg="cyan", bold=True)


def style_label(label: str) -> str:
    """Style a label for summary lines ("Policies: 4")."""
    return click.style(f"{label}:", fg="cyan", bold=True)


def style_success(message: str) -> str:
    """Style a success message with checkmark."""
    return click.style(f"✓ {message}", fg="green")


def style_error(message: str) -> str:
    """Style an error message with cross mark.

    Example:
        >>> click.echo(style_error("State file is invalid"), err=True)
        ✗ State file is invalid
    """
    return click.style(f"✗ {message}", fg="red")


def style_warning(message: str) -> str:
    """Style a warning with yellow color."""
    return click.style(f"Warning: {message}", fg="yellow", bold=True)


def style_dim(message: str) -> str:
    """Style a neutral/empty state message as dim."""
    return click.style(message, dim=True)


def style_effect(effect: Effect) -> str:
    """ALLOW in green, DENY in red, both bold."""
    color = "green" if effect == Effect.ALLOW else "red"
    return click.style(effect.value.upper(), fg=color, bold=True)


def style_decision(allowed: bool) -> str:
    """Final decision banner for evaluate output."""
    if allowed:
        return click.style("ALLOWED", fg="green", bold=True)
    return click.style("DENIED", fg="red", bold=True)
