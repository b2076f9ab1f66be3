"""CLI for system backups, restores and tenant exports.

Usage:
    BACKUP_PROFILE=prod tenant-backup backup --type full
    tenant-backup backup --type selective --table companies --table strategic_plans
    tenant-backup jobs
    tenant-backup restore <job-id> --strategy skip --safety-backup --yes
    tenant-backup export <tenant-id> --output acme.json
    tenant-backup import <tenant-id> acme.json --mode merge --yes
    tenant-backup validate backup.json
    tenant-backup run-schedules
    tenant-backup delete <job-id> --yes
    tenant-backup profiles

Commands:
    backup         - Run a backup job
    jobs           - List backup jobs
    restore        - Restore a completed backup
    export         - Export one tenant to a JSON file
    import         - Import an export into another tenant
    validate       - Check a backup document without touching the database
    run-schedules  - Run every due backup schedule
    delete         - Delete a backup job and its stored files
    profiles       - List available profiles
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from tenant_backup.config.loader import load_backup_config
from tenant_backup.errors import BackupEngineError, InvalidBackupError
from tenant_backup.factory import BackupContext, build_context
from tenant_backup.jobs import (
    ExportDocument,
    delete_backup,
    export_tenant,
    import_tenant,
    load_backup_document,
    run_backup,
    run_due_schedules,
    run_restore,
    validate_backup_document,
)
from tenant_backup.ledger import (
    BACKUP_TYPES,
    CONFLICT_STRATEGIES,
    IMPORT_MODES,
    SYSTEM_USER_ID,
)

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _open_context(args: argparse.Namespace) -> BackupContext:
    config_path = Path(args.config) if getattr(args, "config", None) else None
    return build_context(config_path, env_prefix=getattr(args, "env_prefix", ""))


def _actor(args: argparse.Namespace) -> str:
    return getattr(args, "actor", None) or SYSTEM_USER_ID


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_backup(args: argparse.Namespace) -> int:
    """Run a backup job on the active profile.

    Returns:
        0 if the job completed, 1 otherwise.
    """
    context = _open_context(args)
    try:
        console.print(
            f"Running {args.type} backup on [bold cyan]{context.profile_name}[/bold cyan]...",
            style="dim",
        )
        job = await run_backup(
            context.adapter,
            context.storage,
            context.ledger,
            backup_type=args.type,
            tables=args.tables,
            notes=args.notes or "",
            actor_id=_actor(args),
            catalog=context.catalog,
            access=context.access,
            settings=context.settings,
        )
    finally:
        await context.close()

    if job.status != "completed":
        console.print(f"[bold red]x[/bold red] Backup {job.id} failed: {job.error_message}")
        return 1

    console.print(f"[bold green]v[/bold green] Backup [bold]{job.id}[/bold] completed")
    console.print(
        f"  {job.processed_tables}/{job.total_tables} tables, "
        f"{job.total_records} records, {job.backup_size_bytes} bytes"
    )
    if job.processed_tables < job.total_tables:
        console.print(
            f"  [yellow]{job.total_tables - job.processed_tables} table(s) "
            "could not be read[/yellow]"
        )
    return 0


async def _async_jobs(args: argparse.Namespace) -> int:
    context = _open_context(args)
    try:
        jobs = await context.ledger.list_backup_jobs(status=args.status)
    finally:
        await context.close()

    table = Table(title="Backup Jobs", show_header=True, header_style="bold")
    table.add_column("Id")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Tables", justify="right")
    table.add_column("Records", justify="right")
    table.add_column("Created")
    table.add_column("Notes")

    for job in jobs[: args.limit]:
        style = {"completed": "green", "failed": "red"}.get(job.status, "yellow")
        table.add_row(
            job.id,
            job.backup_type,
            f"[{style}]{job.status}[/{style}]",
            f"{job.processed_tables}/{job.total_tables}",
            str(job.total_records),
            job.created_at.strftime("%Y-%m-%d %H:%M"),
            job.notes or "",
        )

    console.print(table)
    return 0


async def _async_restore(args: argparse.Namespace) -> int:
    """Restore a backup job; requires ``--yes``."""
    if not args.yes:
        console.print(
            f"[yellow]Restoring {args.job_id} with strategy '{args.strategy}' writes to the "
            "database.[/yellow]\nRe-run with --yes to proceed."
        )
        return 1

    context = _open_context(args)
    try:
        log = await run_restore(
            context.adapter,
            context.storage,
            context.ledger,
            backup_job_id=args.job_id,
            target_tables=args.tables,
            conflict_strategy=args.strategy,
            create_safety_backup=args.safety_backup,
            notes=args.notes,
            actor_id=_actor(args),
            catalog=context.catalog,
            access=context.access,
            settings=context.settings,
        )
    finally:
        await context.close()

    if log.status != "completed":
        console.print(f"[bold red]x[/bold red] Restore failed: {log.error_message}")
        return 1

    console.print(
        f"[bold green]v[/bold green] Restored {log.records_restored} records into "
        f"{len(log.tables_restored)} tables"
    )
    if log.safety_backup_id:
        console.print(f"  Safety backup: [bold]{log.safety_backup_id}[/bold]")
    if log.error_message:
        console.print(f"  [yellow]{log.error_message}[/yellow]")
    return 0


async def _async_export(args: argparse.Namespace) -> int:
    context = _open_context(args)
    try:
        document = await export_tenant(
            context.adapter,
            context.ledger,
            args.tenant_id,
            actor_id=_actor(args),
            catalog=context.catalog,
            access=context.access,
            settings=context.settings,
        )
    finally:
        await context.close()

    output = Path(args.output or f"export_{args.tenant_id}.json")
    output.write_text(document.model_dump_json(indent=2))
    console.print(
        f"[bold green]v[/bold green] Exported {document.total_records} records from "
        f"{len(document.tables_exported)} tables to [bold]{output}[/bold]"
    )
    return 0


async def _async_import(args: argparse.Namespace) -> int:
    """Import an export file into a tenant; requires ``--yes``."""
    source = Path(args.file)
    if not source.exists():
        console.print(f"[red]Error: file not found: {source}[/red]")
        return 1
    document = ExportDocument.model_validate_json(source.read_text())

    if not args.yes:
        console.print(
            f"[yellow]Importing {document.total_records} records into {args.tenant_id} "
            f"({args.mode} mode).[/yellow]\nRe-run with --yes to proceed."
        )
        return 1

    context = _open_context(args)
    try:
        result = await import_tenant(
            context.adapter,
            context.ledger,
            args.tenant_id,
            document,
            mode=args.mode,
            actor_id=_actor(args),
            catalog=context.catalog,
            access=context.access,
            settings=context.settings,
        )
    finally:
        await context.close()

    console.print(
        f"[bold green]v[/bold green] Imported {result.total_records} records into "
        f"{len(result.tables_imported)} tables"
    )
    for error in result.errors:
        console.print(f"  [yellow]{error['table']}: {error['error']}[/yellow]")
    return 0 if result.success else 1


async def _async_run_schedules(args: argparse.Namespace) -> int:
    context = _open_context(args)
    try:
        runs = await run_due_schedules(
            context.adapter,
            context.storage,
            context.ledger,
            catalog=context.catalog,
            settings=context.settings,
        )
    finally:
        await context.close()

    if not runs:
        console.print("No schedules due.", style="dim")
        return 0

    for run in runs:
        if run.success:
            console.print(
                f"[bold green]v[/bold green] {run.schedule_name}: backup {run.backup_job_id}"
                f", rotated {len(run.deleted_backups)}"
            )
        else:
            console.print(f"[bold red]x[/bold red] {run.schedule_name}: {run.error}")
    return 0 if all(run.success for run in runs) else 1


async def _async_delete(args: argparse.Namespace) -> int:
    """Delete a backup job and its files; requires ``--yes``."""
    if not args.yes:
        console.print(f"[yellow]Re-run with --yes to delete backup {args.job_id}.[/yellow]")
        return 1

    context = _open_context(args)
    try:
        await delete_backup(context.storage, context.ledger, args.job_id)
    finally:
        await context.close()

    console.print(f"[bold green]v[/bold green] Deleted backup {args.job_id}")
    return 0


# ============================================================================
# Command entry points
# ============================================================================


def _run(coro_fn, args: argparse.Namespace) -> int:
    try:
        return asyncio.run(coro_fn(args))
    except (FileNotFoundError, BackupEngineError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1


def cmd_backup(args: argparse.Namespace) -> int:
    """Run a backup job.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return _run(_async_backup, args)


def cmd_jobs(args: argparse.Namespace) -> int:
    return _run(_async_jobs, args)


def cmd_restore(args: argparse.Namespace) -> int:
    return _run(_async_restore, args)


def cmd_export(args: argparse.Namespace) -> int:
    return _run(_async_export, args)


def cmd_import(args: argparse.Namespace) -> int:
    return _run(_async_import, args)


def cmd_run_schedules(args: argparse.Namespace) -> int:
    return _run(_async_run_schedules, args)


def cmd_delete(args: argparse.Namespace) -> int:
    return _run(_async_delete, args)


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate a backup document on disk.

    Reads only the local file -- no database calls.

    Returns:
        0 if the document is valid, 1 otherwise.
    """
    path = Path(args.file)
    if not path.exists():
        console.print(f"[red]Error: file not found: {path}[/red]")
        return 1

    try:
        document = load_backup_document(path.read_bytes())
    except InvalidBackupError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    report = validate_backup_document(document)
    style = "green" if report.valid else "red"
    console.print(f"[{style}]{report.format_report()}[/{style}]")
    if args.json:
        console.print_json(json.dumps(report.model_dump()))
    return 0 if report.valid else 1


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from backup.toml.

    Reads only local TOML config -- no database calls.

    Returns:
        0 on success, 1 if backup.toml not found.
    """
    config_path = Path(args.config) if getattr(args, "config", None) else None
    try:
        config = load_backup_config(config_path)
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    table = Table(title="Backup Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Provider")
    table.add_column("Storage")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        is_default = name == config.default_profile
        table.add_row(
            "[bold green]*[/bold green]" if is_default else " ",
            f"[bold cyan]{name}[/bold cyan]" if is_default else name,
            profile.provider,
            profile.storage_dir or config.engine.storage_bucket,
            profile.description or "",
        )

    console.print(table)

    if config.default_profile:
        console.print("\n[bold green]*[/bold green] = default profile")

    return 0


def main() -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="tenant-backup",
        description="System backup, restore and tenant export toolkit",
    )

    parser.add_argument(
        "--config",
        default=None,
        help="Path to backup.toml (default: $BACKUP_CONFIG or ./backup.toml)",
    )
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_BACKUP_PROFILE)"
        ),
    )
    parser.add_argument(
        "--actor",
        default=None,
        help="Acting user id checked against access control (default: system user)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # backup command
    p_backup = subparsers.add_parser("backup", help="Run a backup job")
    p_backup.add_argument("--type", choices=BACKUP_TYPES, default="full")
    p_backup.add_argument(
        "--table",
        dest="tables",
        action="append",
        help="Table to include in a selective backup (repeatable)",
    )
    p_backup.add_argument("--notes", default=None)
    p_backup.set_defaults(func=cmd_backup)

    # jobs command
    p_jobs = subparsers.add_parser("jobs", help="List backup jobs")
    p_jobs.add_argument("--status", default=None, help="Only jobs with this status")
    p_jobs.add_argument("--limit", type=int, default=20)
    p_jobs.set_defaults(func=cmd_jobs)

    # restore command
    p_restore = subparsers.add_parser("restore", help="Restore a completed backup")
    p_restore.add_argument("job_id", help="Backup job id")
    p_restore.add_argument(
        "--table",
        dest="tables",
        action="append",
        help="Table to restore (repeatable; default: every table in the backup)",
    )
    p_restore.add_argument("--strategy", choices=CONFLICT_STRATEGIES, default="skip")
    p_restore.add_argument(
        "--safety-backup",
        action="store_true",
        help="Take a full backup before restoring",
    )
    p_restore.add_argument("--notes", default=None)
    p_restore.add_argument("--yes", action="store_true", help="Actually perform the restore")
    p_restore.set_defaults(func=cmd_restore)

    # export command
    p_export = subparsers.add_parser("export", help="Export one tenant to a JSON file")
    p_export.add_argument("tenant_id", help="Tenant (company) id")
    p_export.add_argument("--output", "-o", default=None, help="Output file")
    p_export.set_defaults(func=cmd_export)

    # import command
    p_import = subparsers.add_parser("import", help="Import an export into another tenant")
    p_import.add_argument("tenant_id", help="Target tenant (company) id")
    p_import.add_argument("file", help="Export file produced by 'export'")
    p_import.add_argument("--mode", choices=IMPORT_MODES, default="merge")
    p_import.add_argument("--yes", action="store_true", help="Actually perform the import")
    p_import.set_defaults(func=cmd_import)

    # validate command
    p_validate = subparsers.add_parser("validate", help="Check a backup document")
    p_validate.add_argument("file", help="Backup JSON file")
    p_validate.add_argument("--json", action="store_true", help="Also print the report as JSON")
    p_validate.set_defaults(func=cmd_validate)

    # run-schedules command
    p_schedules = subparsers.add_parser("run-schedules", help="Run every due backup schedule")
    p_schedules.set_defaults(func=cmd_run_schedules)

    # delete command
    p_delete = subparsers.add_parser("delete", help="Delete a backup job and its files")
    p_delete.add_argument("job_id", help="Backup job id")
    p_delete.add_argument("--yes", action="store_true", help="Actually delete")
    p_delete.set_defaults(func=cmd_delete)

    # profiles command
    p_profiles = subparsers.add_parser("profiles", help="List available profiles")
    p_profiles.set_defaults(func=cmd_profiles)

    args = parser.parse_args()
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
