"""CLI for schema drift detection and reconciliation.

Provides commands for environment management, comparison, migration,
snapshot export, and restricted-user checks.

Usage:
    db-drift init
    db-drift envs
    db-drift objects --env DEV --type views
    db-drift compare --to PROD --type tables
    db-drift migrate --from STAGE --to PROD --confirm
    db-drift export --env PROD --output prod.json
    db-drift test --env PROD
    db-drift probe --env PROD_RO
    db-drift user-script --env PROD --username drift_ro --write-alter

Commands:
    init         - Write a starter db-drift.toml
    envs         - List configured environments and promotion order
    objects      - List object names of one kind
    compare      - Compare two environments
    migrate      - Apply source changes to the destination
    export       - Capture an environment as a snapshot file
    test         - Test an environment's connection
    probe        - Check a restricted user against its declared permissions
    user-script  - Print the statements that create a restricted user
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from db_drift.config.loader import DEFAULT_CONFIG_NAME, write_project_template
from db_drift.errors import DriftError
from db_drift.orchestration import DriftContext, Orchestrator, build_context
from db_drift.schema.models import DiffRow

console = Console()

STATUS_STYLES = {
    "equal": "green",
    "different": "yellow",
    "missing_in_source": "red",
    "missing_in_target": "cyan",
}


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _config_path(args: argparse.Namespace) -> Path | None:
    return Path(args.config) if getattr(args, "config", None) else None


def _context(args: argparse.Namespace) -> DriftContext:
    """Context from ``--config``/``--history-dir``, reused across one run."""
    context = getattr(args, "context", None)
    if context is None:
        history = getattr(args, "history_dir", None)
        legacy = getattr(args, "legacy_config", None)
        context = build_context(
            _config_path(args),
            Path(history) if history else None,
            require_config=legacy is None,
            legacy_path=Path(legacy) if legacy else None,
        )
        args.context = context
    return context


def _connection_payload(context: DriftContext, env: str) -> dict[str, Any]:
    """Inline connection material for an environment."""
    entry = context.config.get_connection(env)
    return {"type": entry.type, **entry.config.model_dump()}


def _print_rows(rows: list[DiffRow], show_equal: bool) -> None:
    table = Table(title="Schema Comparison", show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Type", style="dim")
    table.add_column("Status")
    table.add_column("Statements", justify="right")

    for row in rows:
        if row.status == "equal" and not show_equal:
            continue
        style = STATUS_STYLES[row.status]
        table.add_row(
            escape(row.name),
            escape(row.type),
            f"[{style}]{row.status}[/{style}]",
            str(len(row.ddl)) if row.ddl else "-",
        )
    console.print(table)


def _resolve_source(args: argparse.Namespace, context: DriftContext) -> str | None:
    """``--from`` or the environment preceding ``--to`` in the order."""
    if args.source:
        return args.source
    source = context.config.previous_environment(args.dest)
    if source is None:
        console.print(
            f"[red]Error: No environment precedes {args.dest}; pass --from.[/red]"
        )
    return source


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_objects(args: argparse.Namespace) -> int:
    context = _context(args)
    names = await Orchestrator(context).execute(
        "getSchemaObjects",
        {"connection": _connection_payload(context, args.env), "type": args.type},
    )
    if not names:
        console.print(f"[dim]No {args.type} in {args.env}.[/dim]")
        return 0
    for name in names:
        console.print(name)
    return 0


async def _async_compare(args: argparse.Namespace) -> int:
    """Async implementation for compare command.

    Returns:
        0 when every object is equal, 1 on error, 2 when drift was found.
    """
    context = _context(args)
    source = _resolve_source(args, context)
    if source is None:
        return 1

    console.print(
        f"Comparing [bold]{source}[/bold] -> [bold cyan]{args.dest}[/bold cyan] "
        f"({args.type})",
        style="dim",
    )
    rows: list[DiffRow] = await Orchestrator(context).execute(
        "compare", {"srcEnv": source, "destEnv": args.dest, "type": args.type}
    )

    if args.json:
        console.print_json(json.dumps([row.model_dump() for row in rows]))
    else:
        _print_rows(rows, show_equal=args.all)

    drifted = [row for row in rows if row.status != "equal"]
    if not drifted:
        console.print("[bold green]v[/bold green] No drift")
        return 0

    if args.show_sql:
        for row in drifted:
            console.print(f"\n[bold]-- {row.type} {row.name} ({row.status})[/bold]")
            for statement in row.ddl:
                console.print(statement, markup=False, highlight=False)
    return 2


async def _async_migrate(args: argparse.Namespace) -> int:
    """Async implementation for migrate command.

    Compares first, then applies every non-equal row.  Destination-only
    objects are dropped only with ``--include-drops``.
    """
    context = _context(args)
    source = _resolve_source(args, context)
    if source is None:
        return 1

    orchestrator = Orchestrator(context)
    rows: list[DiffRow] = await orchestrator.execute(
        "compare", {"srcEnv": source, "destEnv": args.dest, "type": args.type}
    )

    pending = [
        row
        for row in rows
        if row.status != "equal"
        and (args.include_drops or row.status != "missing_in_source")
    ]
    skipped = 0 if args.include_drops else sum(
        1 for row in rows if row.status == "missing_in_source"
    )

    if not pending:
        console.print("[bold green]v[/bold green] Nothing to migrate")
        return 0

    console.print()
    console.print("[bold]Execution Plan:[/bold]")
    step = 1
    for row in pending:
        for statement in row.ddl:
            first_line = statement.splitlines()[0] if statement else ""
            console.print(
                f"  {step}. [cyan]{escape(row.name)}[/cyan] {escape(first_line)}",
                highlight=False,
            )
            step += 1
    if skipped:
        console.print(
            f"[dim]{skipped} destination-only object(s) kept; "
            f"add --include-drops to drop them.[/dim]"
        )

    if not args.confirm:
        console.print()
        console.print("[dim]To apply, add[/dim] [cyan]--confirm[/cyan] [dim]flag.[/dim]")
        return 0

    console.print()
    console.print("Applying...", style="dim")
    result = await orchestrator.execute(
        "migrate",
        {
            "srcEnv": source,
            "destEnv": args.dest,
            "objects": [row.model_dump() for row in pending],
        },
    )

    for row in result.successful:
        console.print(f"[bold green]v[/bold green] {escape(row.type)} {escape(row.name)}")
    for row in result.failed:
        console.print(
            f"[bold red]x[/bold red] {escape(row.type)} {escape(row.name)}: "
            f"{escape(row.error)}"
        )

    return 1 if result.failed else 0


async def _async_export(args: argparse.Namespace) -> int:
    context = _context(args)
    output = args.output or f"{args.env.lower()}-schema.json"
    snapshot = await Orchestrator(context).execute(
        "export", {"env": args.env, "name": args.name, "output": output}
    )
    count = sum(len(names) for names in snapshot["objects"].values())
    console.print(
        f"[bold green]v[/bold green] Exported {count} objects from "
        f"[bold cyan]{args.env}[/bold cyan] to {output}"
    )
    return 0


async def _async_test(args: argparse.Namespace) -> int:
    context = _context(args)
    result = await Orchestrator(context).execute(
        "test-connection", {"connection": _connection_payload(context, args.env)}
    )
    if result.success:
        console.print(f"[bold green]v[/bold green] {args.env}: {result.message}")
        return 0
    console.print(f"[bold red]x[/bold red] {args.env}: {result.message}")
    return 1


async def _async_probe(args: argparse.Namespace) -> int:
    context = _context(args)
    result = await Orchestrator(context).execute(
        "probe-restricted-user",
        {
            "connection": _connection_payload(context, args.env),
            "permissions": {"writeAlter": args.write_alter},
        },
    )

    table = Table(title=f"Permission Probe: {args.env}", show_header=True, header_style="bold")
    table.add_column("Check")
    table.add_column("Result")
    checks = result.model_dump(by_alias=True)
    for check, outcome in checks.items():
        style = "green" if outcome == "pass" else "red"
        table.add_row(check, f"[{style}]{outcome}[/{style}]")
    console.print(table)

    return 0 if all(outcome == "pass" for outcome in checks.values()) else 1


async def _async_user_script(args: argparse.Namespace) -> int:
    context = _context(args)
    script = await Orchestrator(context).execute(
        "generate-user-setup-script",
        {
            "adminConnection": _connection_payload(context, args.env),
            "restrictedUser": {"username": args.username, "password": args.password},
            "permissions": {"writeAlter": args.write_alter},
        },
    )
    console.print(script, markup=False, highlight=False)
    return 0


# ============================================================================
# Sync command wrappers
# ============================================================================


def _run(coro_fn: Any, args: argparse.Namespace) -> int:
    """Run an async command, reporting db-drift errors as exit code 1."""
    try:
        return asyncio.run(coro_fn(args))
    except (DriftError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1


def cmd_init(args: argparse.Namespace) -> int:
    """Write a starter db-drift.toml.

    Returns:
        0 if written, 1 if the file already exists.
    """
    path = _config_path(args) or Path.cwd() / DEFAULT_CONFIG_NAME
    if not write_project_template(path):
        console.print(f"[yellow]{path} already exists.[/yellow]")
        return 1
    console.print(f"[bold green]v[/bold green] Created {path}")
    return 0


def cmd_envs(args: argparse.Namespace) -> int:
    """List configured environments.

    Reads only local TOML config -- no database calls.
    """
    try:
        context = _context(args)
    except (DriftError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    store = context.config
    table = Table(title="Environments", show_header=True, header_style="bold")
    table.add_column("Environment")
    table.add_column("Type")
    table.add_column("Host")
    table.add_column("Database")

    for env in store.environments:
        entry = store.get_connection(env)
        table.add_row(
            f"[bold cyan]{env}[/bold cyan]" if env in store.order else env,
            entry.type,
            f"{entry.config.host}:{entry.config.port}",
            entry.config.database,
        )
    console.print(table)

    if store.order:
        console.print(f"\n[dim]Promotion order:[/dim] {' -> '.join(store.order)}")
    return 0


def cmd_objects(args: argparse.Namespace) -> int:
    return _run(_async_objects, args)


def cmd_compare(args: argparse.Namespace) -> int:
    return _run(_async_compare, args)


def cmd_migrate(args: argparse.Namespace) -> int:
    return _run(_async_migrate, args)


def cmd_export(args: argparse.Namespace) -> int:
    return _run(_async_export, args)


def cmd_test(args: argparse.Namespace) -> int:
    return _run(_async_test, args)


def cmd_probe(args: argparse.Namespace) -> int:
    return _run(_async_probe, args)


def cmd_user_script(args: argparse.Namespace) -> int:
    return _run(_async_user_script, args)


# ============================================================================
# Main entry point
# ============================================================================

KIND_CHOICES = ["tables", "views", "procedures", "functions", "triggers", "events"]


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for every db-drift command."""
    parser = argparse.ArgumentParser(
        prog="db-drift",
        description="Schema drift detection and reconciliation between environments",
    )
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help=f"Project config file (default: ./{DEFAULT_CONFIG_NAME})",
    )
    parser.add_argument(
        "--history-dir",
        default=None,
        help="Directory for comparison/migration audit files",
    )
    parser.add_argument(
        "--legacy-config",
        default=None,
        help="JSON file with environments in the older ENVIRONMENTS/DB_HOST shape",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_init = subparsers.add_parser("init", help="Write a starter db-drift.toml")
    p_init.set_defaults(func=cmd_init)

    p_envs = subparsers.add_parser("envs", help="List configured environments")
    p_envs.set_defaults(func=cmd_envs)

    p_objects = subparsers.add_parser("objects", help="List object names of one kind")
    p_objects.add_argument("--env", "-e", required=True, help="Environment name")
    p_objects.add_argument("--type", "-t", default="tables", choices=KIND_CHOICES)
    p_objects.set_defaults(func=cmd_objects)

    for name, help_text, func in (
        ("compare", "Compare two environments", cmd_compare),
        ("migrate", "Apply source changes to the destination", cmd_migrate),
    ):
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument(
            "--from",
            "-f",
            dest="source",
            default=None,
            help="Source environment (default: previous in promotion order)",
        )
        p.add_argument("--to", dest="dest", required=True, help="Destination environment")
        p.add_argument("--type", "-t", default="tables", choices=KIND_CHOICES)
        p.set_defaults(func=func)

    p_compare = subparsers.choices["compare"]
    p_compare.add_argument("--all", action="store_true", help="Include equal objects")
    p_compare.add_argument("--json", action="store_true", help="Print rows as JSON")
    p_compare.add_argument("--show-sql", action="store_true", help="Print reconciling statements")

    p_migrate = subparsers.choices["migrate"]
    p_migrate.add_argument(
        "--include-drops",
        action="store_true",
        help="Also drop objects that exist only in the destination",
    )
    p_migrate.add_argument(
        "--confirm",
        action="store_true",
        help="Actually apply the statements",
    )

    p_export = subparsers.add_parser("export", help="Capture an environment as a snapshot")
    p_export.add_argument("--env", "-e", required=True, help="Environment name")
    p_export.add_argument("--output", "-o", default=None, help="Snapshot file path")
    p_export.add_argument("--name", default=None, help="Only export objects with this name")
    p_export.set_defaults(func=cmd_export)

    p_test = subparsers.add_parser("test", help="Test an environment's connection")
    p_test.add_argument("--env", "-e", required=True, help="Environment name")
    p_test.set_defaults(func=cmd_test)

    p_probe = subparsers.add_parser("probe", help="Probe a restricted user")
    p_probe.add_argument("--env", "-e", required=True, help="Environment using the restricted user")
    p_probe.add_argument(
        "--write-alter",
        action="store_true",
        help="The user is expected to have DDL privileges",
    )
    p_probe.set_defaults(func=cmd_probe)

    p_script = subparsers.add_parser("user-script", help="Print a restricted-user setup script")
    p_script.add_argument("--env", "-e", required=True, help="Environment of the admin connection")
    p_script.add_argument("--username", default=None, help="Restricted user name")
    p_script.add_argument("--password", default="", help="Restricted user password")
    p_script.add_argument(
        "--write-alter",
        action="store_true",
        help="Grant DDL privileges as well as read access",
    )
    p_script.set_defaults(func=cmd_user_script)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors or detected drift).
    """
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
