"""Conflict and effectiveness report commands for the pdp CLI.

Usage counters live in the metrics sink of the running process, so a
report produced by a fresh CLI process shows every active policy as unused.
"""

from __future__ import annotations

__all__ = ["conflicts", "report"]

import click

from policy_pdp.pdp.policy import PolicyConflict, PolicyEffectivenessReport
from policy_pdp.service import PolicyEngineService

from ..runtime import CliSettings, echo_json, run_with_service
from ..styling import style_dim, style_header, style_label, style_success, style_warning


@click.command("conflicts")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def conflicts(settings: CliSettings, as_json: bool) -> None:
    """List pairs of active policies with overlapping scope and different effects."""

    async def action(service: PolicyEngineService) -> list[tuple[PolicyConflict, str, str]]:
        found = []
        for conflict in await service.detect_conflicts():
            first = await service.get_policy(conflict.policy1_id)
            second = await service.get_policy(conflict.policy2_id)
            found.append(
                (
                    conflict,
                    first.name if first else conflict.policy1_id,
                    second.name if second else conflict.policy2_id,
                )
            )
        return found

    found = run_with_service(settings, action)

    if as_json:
        echo_json([c.model_dump(mode="json") for c, _, _ in found])
        return

    if not found:
        click.echo(style_success("No conflicts detected"))
        return
    click.echo(style_label("Conflicts") + f" {len(found)}")
    for conflict, first, second in found:
        resolution = conflict.resolution.value if conflict.resolution else "unresolved"
        click.echo(f"  {first} <-> {second} " + style_dim(f"[{conflict.id}] {resolution}"))


@click.command("report")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def report(settings: CliSettings, as_json: bool) -> None:
    """Summarize policy counts, usage, conflicts and recommendations."""

    async def action(service: PolicyEngineService) -> PolicyEffectivenessReport:
        return await service.generate_effectiveness_report()

    result = run_with_service(settings, action)

    if as_json:
        echo_json(result.model_dump(mode="json"))
        return

    click.echo(style_header("Policy Effectiveness"))
    click.echo(style_label("Total policies") + f" {result.total_policies}")
    click.echo(style_label("Active policies") + f" {result.active_policies}")
    click.echo(style_label("Unused policies") + f" {len(result.unused_policies)}")
    click.echo(style_label("Conflicts") + f" {len(result.conflicts)}")
    if result.recommendations:
        click.echo()
        for recommendation in result.recommendations:
            click.echo(style_warning(recommendation))
