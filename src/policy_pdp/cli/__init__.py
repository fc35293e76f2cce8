"""Command-line interface for policy-pdp.

Provides commands for validating, listing, importing and exporting policies,
evaluating access, and reporting on conflicts and usage.
"""

from .main import cli, main

__all__ = ["cli", "main"]
