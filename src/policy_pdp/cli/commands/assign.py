"""Assign command for the pdp CLI.

Grants policies to a user by name, optionally until an expiry time.
"""

from __future__ import annotations

__all__ = ["assign"]

from datetime import datetime, timezone

import click

from policy_pdp.exceptions import PolicyNotFoundError
from policy_pdp.service import PolicyEngineService

from ..runtime import CliSettings, run_with_service
from ..styling import style_success


@click.command("assign")
@click.argument("user_id")
@click.argument("policy_names", nargs=-1, required=True)
@click.option(
    "--expires",
    type=click.DateTime(),
    help="Expiry of the grant, interpreted as UTC (e.g. 2026-12-31T00:00:00)",
)
@click.pass_obj
def assign(
    settings: CliSettings,
    user_id: str,
    policy_names: tuple[str, ...],
    expires: datetime | None,
) -> None:
    """Grant policies (by name) directly to a user.

    Re-assigning a policy replaces its expiry.
    """
    expires_at = expires.replace(tzinfo=timezone.utc) if expires else None

    async def action(service: PolicyEngineService) -> None:
        ids = []
        for name in policy_names:
            found = await service.store.get_policy_by_name(name)
            if found is None:
                raise PolicyNotFoundError(name)
            ids.append(found.id)
        for policy_id in ids:
            await service.assign_policy_to_user(user_id, policy_id, expires_at)

    run_with_service(settings, action, save=True)
    for name in policy_names:
        click.echo(style_success(f"Assigned '{name}' to {user_id}"))
