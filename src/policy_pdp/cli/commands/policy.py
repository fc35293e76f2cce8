"""Policy command group for the pdp CLI.

Policy files may hold a single policy object, a list of policies, or an
export document ({"version", "exportDate", "policies"}). Keys may be
camelCase or snake_case.
"""

from __future__ import annotations

__all__ = ["policy"]

import json
import sys
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError

from policy_pdp.catalog.validation import PolicyValidator
from policy_pdp.constants import EXPORT_FORMAT_VERSION
from policy_pdp.exceptions import PolicyValidationError
from policy_pdp.service import PolicyEngineService
from policy_pdp.transfer import PolicyExportDocument, PolicyRecord
from policy_pdp.utils.file_helpers import format_validation_errors

from ..runtime import CliSettings, echo_json, fail, run_with_service
from ..styling import (
    style_dim,
    style_effect,
    style_error,
    style_label,
    style_success,
    style_warning,
)


def _read_records(path: Path) -> list[PolicyRecord]:
    """Parse a policy file into records.

    Raises:
        PolicyValidationError: If the file is not JSON or an entry has the
            wrong shape.
    """
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise PolicyValidationError(f"Invalid JSON in {path}", [str(e)]) from e

    if isinstance(data, dict) and "policies" in data:
        data = data["policies"]
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise PolicyValidationError(f"Invalid policy file {path}", ["expected an object or a list"])

    try:
        return [PolicyRecord.model_validate(item) for item in data]
    except ValidationError as e:
        raise PolicyValidationError(f"Invalid policy file {path}", format_validation_errors(e)) from e


@click.group()
def policy() -> None:
    """Policy management commands."""
    pass


@policy.command("validate")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def policy_validate(settings: CliSettings, path: Path) -> None:
    """Validate policy definitions without saving them.

    Applies the same rules as policy creation (names, resource patterns,
    wildcard switches, condition complexity) using the engine options from
    --config.

    Exit codes:
        0: Every policy is valid (warnings allowed)
        1: At least one policy is invalid, or the file cannot be read
    """
    try:
        validator = PolicyValidator(settings.load_config().engine)
        records = _read_records(path)
    except PolicyValidationError as e:
        fail(e.message, e.errors)
    except (OSError, ValueError) as e:
        fail(str(e))

    invalid = 0
    for index, record in enumerate(records, 1):
        label = record.name or f"#{index}"
        try:
            result = validator.validate(record.to_definition())
        except ValidationError as e:
            invalid += 1
            click.echo(style_error(f"{label}"))
            for line in format_validation_errors(e):
                click.echo(f"    {line}")
            continue

        if result.is_valid:
            click.echo(style_success(label))
        else:
            invalid += 1
            click.echo(style_error(label))
            for error in result.errors:
                click.echo(f"    {error}")
        for warning in result.warnings:
            click.echo("    " + style_warning(warning))

    total = len(records)
    click.echo(f"\n{total - invalid}/{total} polic{'y' if total == 1 else 'ies'} valid")
    if invalid:
        sys.exit(1)


@policy.command("add")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def policy_add(settings: CliSettings, path: Path) -> None:
    """Create policies from a definition file.

    All policies are validated first; nothing is created if any is invalid.
    """

    async def action(service: PolicyEngineService) -> list[str]:
        records = _read_records(path)
        document = PolicyExportDocument(version=EXPORT_FORMAT_VERSION, policies=records)
        created = await service.import_policies(
            json.dumps(document.model_dump(mode="json", by_alias=True))
        )
        return [p.name for p in created]

    names = run_with_service(settings, action, save=True)
    for name in names:
        click.echo(style_success(f"Created policy '{name}'"))


@policy.command("list")
@click.option("--resource", "-r", help="Only policies whose resource patterns match")
@click.option("--action", "-a", help="Only policies whose action patterns match")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def policy_list(settings: CliSettings, resource: str | None, action: str | None, as_json: bool) -> None:
    """List stored policies, highest priority first."""

    async def fetch(service: PolicyEngineService) -> list[Any]:
        return await service.get_policies(resource, action)

    policies = sorted(run_with_service(settings, fetch), key=lambda p: -p.priority)

    if as_json:
        echo_json([p.model_dump(mode="json") for p in policies])
        return

    click.echo(style_label("Policies") + f" {len(policies)}")
    if not policies:
        click.echo(style_dim("  (no policies)"))
        return
    for p in policies:
        state = "" if p.is_active else style_dim(" (inactive)")
        click.echo(f"  [{p.priority:>4}] {style_effect(p.effect)} {p.name}{state}")
        click.echo(style_dim(f"         resources={', '.join(p.resources)} actions={', '.join(p.actions)}"))


@policy.command("export")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write to this file instead of stdout",
)
@click.option("--id", "policy_ids", multiple=True, help="Export only this policy id (repeatable)")
@click.pass_obj
def policy_export(settings: CliSettings, output: Path | None, policy_ids: tuple[str, ...]) -> None:
    """Export policies as a JSON document."""

    async def action(service: PolicyEngineService) -> str:
        return await service.export_policies(list(policy_ids) or None)

    document = run_with_service(settings, action)
    if output is None:
        click.echo(document)
        return
    output.write_text(document + "\n", encoding="utf-8")
    click.echo(style_success(f"Exported to {output}"))


@policy.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def policy_import(settings: CliSettings, path: Path) -> None:
    """Import policies from an export document.

    New ids are assigned. Nothing is imported if any entry is invalid or
    clashes with an existing name.
    """
    document = path.read_text(encoding="utf-8")

    async def action(service: PolicyEngineService) -> int:
        return len(await service.import_policies(document))

    count = run_with_service(settings, action, save=True)
    click.echo(style_success(f"Imported {count} polic{'y' if count == 1 else 'ies'}"))
