import json
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from pydantic import ValidationError

from entityledger.core.config import EntityLedgerConfig, build_ledger, build_logger, load_config
from entityledger.core.observability import InvocationLogger
from entityledger.core.records import list_kinds
from entityledger.dispatch import Dispatcher


def _dispatcher(config: EntityLedgerConfig) -> Dispatcher:
    return Dispatcher(build_ledger(config), log=build_logger(config))


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to entityledger.yaml (defaults to ./entityledger.yaml or ./config.yaml)",
)
@click.option("--ledger", "ledger_path", type=click.Path(path_type=Path), default=None, help="SQLite ledger file")
@click.option("--no-log", is_flag=True, default=False, help="Don't record invocations")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], ledger_path: Optional[Path], no_log: bool) -> None:
    """entityledger CLI.

    Dispatch entity operations against a local ledger and inspect invocation logs.
    """
    overrides = {}
    if ledger_path is not None:
        overrides["ledger"] = {"backend": "sqlite", "path": str(ledger_path.resolve())}
    if no_log:
        overrides["logging"] = {"enabled": False}
    try:
        ctx.obj = load_config(config_path, cli_overrides=overrides or None)
    except ValidationError as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e


# ---- dispatch commands ----


@cli.command("invoke")
@click.argument("name")
@click.argument("args", nargs=-1)
@click.pass_obj
def invoke(config: EntityLedgerConfig, name: str, args: Tuple[str, ...]) -> None:
    """Dispatch operation NAME with ARGS and print the envelope as JSON."""
    dispatcher = _dispatcher(config)
    envelope = dispatcher.invoke(name, list(args))
    click.echo(json.dumps(envelope.to_dict(), indent=2))
    for failure in dispatcher.log_failures:
        click.echo(f"Warning: invocation log not written ({failure})", err=True)
    if not envelope.ok:
        sys.exit(1)


@cli.command("operations")
@click.pass_obj
def list_operations(config: EntityLedgerConfig) -> None:
    """List dispatchable operations and their arities."""
    for op in Dispatcher(build_ledger(config)).operations():
        click.echo(f"{op['name']}\t{op['arity']}")


@cli.command("kinds")
def kinds() -> None:
    """List registered record kinds."""
    for kind in list_kinds():
        click.echo(kind)


# ---- log commands ----


@cli.group()
def log() -> None:
    """Invocation logs (summary, errors)."""


@log.command("summary")
@click.option("--session", default=None, help="Session ID (defaults to the most recent session)")
@click.pass_obj
def log_summary(config: EntityLedgerConfig, session: Optional[str]) -> None:
    logger = InvocationLogger(config.logging.path)
    summary = logger.get_session_summary(session or logger.latest_session())
    click.echo(json.dumps(summary, indent=2))


@log.command("errors")
@click.option("--limit", default=20, show_default=True, type=int)
@click.pass_obj
def log_errors(config: EntityLedgerConfig, limit: int) -> None:
    logger = InvocationLogger(config.logging.path)
    for entry in logger.get_errors(limit=limit):
        click.echo(json.dumps({"ts": entry.ts, "session": entry.session, **entry.data}))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
