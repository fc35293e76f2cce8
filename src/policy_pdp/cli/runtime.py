"""Shared plumbing for CLI commands.

Every command works on a JSON state snapshot:
1. load AppConfig (--config, or defaults)
2. attach the system log file and open the JSONL audit sink
3. load the state snapshot (--state, or the platform data dir)
4. run the command against a PolicyEngineService
5. save the snapshot back when the command mutated state

Expected failures (missing/invalid files, engine errors) are printed on
stderr and exit with code 1.
"""

from __future__ import annotations

__all__ = [
    "CliSettings",
    "echo_json",
    "fail",
    "run_with_service",
]

import asyncio
import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, NoReturn, TypeVar

import click

from policy_pdp.config import AppConfig
from policy_pdp.constants import DEFAULT_STATE_DIR, DEFAULT_STATE_FILENAME
from policy_pdp.exceptions import PolicyEngineError, PolicyValidationError
from policy_pdp.service import PolicyEngineService, create_service
from policy_pdp.store.snapshot import load_state, save_state
from policy_pdp.telemetry.audit.jsonl_sink import JsonlAuditSink
from policy_pdp.telemetry.system.system_logger import (
    configure_system_logger_file,
    get_system_logger,
)

from .styling import style_error

T = TypeVar("T")


@dataclass(frozen=True)
class CliSettings:
    """Paths given on the pdp group.

    Attributes:
        state_path: JSON state snapshot.
        config_path: Optional AppConfig JSON file.
    """

    state_path: Path
    config_path: Path | None = None

    @classmethod
    def from_options(cls, state: Path | None, config: Path | None) -> "CliSettings":
        return cls(
            state_path=state or Path(DEFAULT_STATE_DIR) / DEFAULT_STATE_FILENAME,
            config_path=config,
        )

    def load_config(self) -> AppConfig:
        """Raises FileNotFoundError or ValueError for a bad --config file."""
        if self.config_path is None:
            return AppConfig()
        return AppConfig.load_from_files(self.config_path)


def fail(message: str, details: list[str] | None = None) -> NoReturn:
    """Print an error (plus indented details) on stderr and exit 1."""
    click.echo(style_error(message), err=True)
    for line in details or []:
        click.echo(f"  - {line}", err=True)
    sys.exit(1)


async def _run(
    settings: CliSettings,
    action: Callable[[PolicyEngineService], Awaitable[T]],
    save: bool,
) -> T:
    config = settings.load_config()
    configure_system_logger_file(config.logging.system_log_path, config.logging.log_level)

    sink = JsonlAuditSink.from_path(config.logging.audit_log_path)
    try:
        store = await load_state(settings.state_path)
        service = create_service(
            config.engine,
            store=store,
            audit_sink=sink,
            system_logger=get_system_logger(),
        )
        result = await action(service)
        if save:
            await save_state(store, settings.state_path)
        return result
    finally:
        sink.close()


def run_with_service(
    settings: CliSettings,
    action: Callable[[PolicyEngineService], Awaitable[T]],
    *,
    save: bool = False,
) -> T:
    """Run an async action against a service built from the CLI settings.

    Args:
        settings: Paths from the pdp group.
        action: Coroutine function receiving the service.
        save: Write the state snapshot back after a successful action.

    Returns:
        Whatever action returns. Expected errors exit the process with code 1.
    """
    try:
        return asyncio.run(_run(settings, action, save))
    except PolicyValidationError as e:
        fail(e.message, e.errors)
    except PolicyEngineError as e:
        fail(str(e))
    except (OSError, ValueError) as e:
        fail(str(e))


def echo_json(data: Any) -> None:
    """Pretty-print JSON-serializable data on stdout."""
    click.echo(json.dumps(data, indent=2, default=str))
