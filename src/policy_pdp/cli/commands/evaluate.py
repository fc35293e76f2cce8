"""Evaluate command for the pdp CLI."""

from __future__ import annotations

__all__ = ["evaluate"]

import json

import click

from policy_pdp.pdp.evaluation import PolicyEvaluationContext, PolicyEvaluationResult
from policy_pdp.service import PolicyEngineService

from ..runtime import CliSettings, echo_json, run_with_service
from ..styling import style_decision, style_dim, style_effect, style_label


def _parse_attribute(ctx: click.Context, param: click.Parameter, values: tuple[str, ...]) -> dict:
    """Turn KEY=VALUE pairs into a dict; values are parsed as JSON when possible."""
    attributes = {}
    for item in values:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got '{item}'")
        try:
            attributes[key] = json.loads(raw)
        except json.JSONDecodeError:
            attributes[key] = raw
    return attributes


@click.command("evaluate")
@click.argument("user_id")
@click.argument("resource")
@click.argument("action")
@click.option(
    "--attr",
    "attributes",
    multiple=True,
    callback=_parse_attribute,
    help="Request attribute KEY=VALUE (repeatable); VALUE is JSON or plain text",
)
@click.option("--trace", is_flag=True, help="Show every policy attempted")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def evaluate(
    settings: CliSettings,
    user_id: str,
    resource: str,
    action: str,
    attributes: dict,
    trace: bool,
    as_json: bool,
) -> None:
    """Decide whether USER_ID may perform ACTION on RESOURCE.

    Exit codes:
        0: Evaluation completed (allowed or denied)
        1: State or config could not be loaded
    """
    context = PolicyEvaluationContext(
        user_id=user_id, resource=resource, action=action, attributes=attributes
    )

    async def run(service: PolicyEngineService) -> PolicyEvaluationResult:
        return await service.evaluate_user_access(user_id, context)

    result = run_with_service(settings, run)

    if as_json:
        echo_json(result.model_dump(mode="json"))
        return

    click.echo(f"{style_decision(result.is_allowed)} {result.reason}")
    click.echo(style_dim(f"  evaluated in {result.evaluation_time_ms:.2f} ms"))
    if trace:
        click.echo(style_label("Trace"))
        if not result.evaluation_trace:
            click.echo(style_dim("  (no applicable policies)"))
        for entry in result.evaluation_trace:
            outcome = "matched" if entry.matched else entry.failure_reason
            click.echo(f"  [{entry.priority:>4}] {style_effect(entry.effect)} {entry.policy_name}: {outcome}")
