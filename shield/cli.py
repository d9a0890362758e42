from datetime import datetime
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from shield import __version__
from shield.config import (
    add_workspace,
    find_workspace,
    get_workspaces,
    load_config,
    remove_workspace,
)
from shield.errors import ShieldError
from shield.log import read_logs, write_log
from shield.restore import RestoreEngine
from shield.snapshot import create_snapshot_store
from shield.utils import format_bytes, format_time_ago

_EVENT_STYLE = {
    "create": "[green]create[/green]",
    "change": "[yellow]change[/yellow]",
    "delete": "[red]delete[/red]",
    "rename": "[cyan]rename[/cyan]",
}

path_option = click.option(
    "--path", "workspace_path", type=click.Path(file_okay=False), default=None,
    help="Workspace directory (default: nearest directory with .shield/, else cwd).",
)


@click.group()
@click.version_option(version=__version__)
def main():
    """Shield: per-directory file-change backups you can roll back."""


def _load_config(console):
    try:
        return load_config()
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)


def _engine(console):
    config = _load_config(console)
    try:
        store = create_snapshot_store(config)
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)
    return RestoreEngine(store)


def _resolve_workspace(console, workspace_path):
    if workspace_path:
        workspace = Path(workspace_path).resolve()
    else:
        workspace = find_workspace() or Path.cwd()
    if not workspace.is_dir():
        console.print(f"[red]Directory not found: {workspace}[/red]")
        raise SystemExit(1)
    return workspace


def _format_ts(timestamp_ms):
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def _event_label(record):
    if record.raw_event_type is None:
        return "[dim]-[/dim]"
    return _EVENT_STYLE.get(record.raw_event_type, escape(record.raw_event_type))


@main.command("list")
@path_option
@click.option("-n", "--limit", default=50, show_default=True, help="Number of snapshots to show.")
def list_cmd(workspace_path, limit):
    """List snapshots, newest first."""
    console = Console()
    workspace = _resolve_workspace(console, workspace_path)
    snapshots = _engine(console).list_snapshots(workspace)

    if not snapshots:
        console.print("[dim]No snapshots found.[/dim]")
        return

    table = Table(title=f"Snapshots ({len(snapshots)} total)")
    table.add_column("ID", style="bold cyan")
    table.add_column("Created", style="dim")
    table.add_column("Age", style="dim")
    table.add_column("Files", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Message", max_width=40)

    for s in snapshots[:limit]:
        table.add_row(
            s.id,
            _format_ts(s.timestamp),
            format_time_ago(s.timestamp),
            str(len(s.files)),
            format_bytes(sum(f.size for f in s.files)),
            s.message or "",
        )

    console.print(table)
    if len(snapshots) > limit:
        console.print(f"[dim]... and {len(snapshots) - limit} more[/dim]")


@main.command()
@path_option
def status(workspace_path):
    """Show backup statistics for a workspace."""
    console = Console()
    workspace = _resolve_workspace(console, workspace_path)
    engine = _engine(console)
    stats = engine.compute_stats(workspace)

    console.print("[bold]Shield Status[/bold]\n")
    console.print(f"  Workspace:     {workspace}")
    console.print(f"  Vault:         {engine.store.shield_dir(workspace)}")
    console.print(f"  Snapshots:     {stats.snapshot_count}")
    console.print(f"  File records:  {stats.total_file_records}")
    console.print(f"  Unique files:  {stats.unique_path_count}")
    console.print(f"  Total size:    {format_bytes(stats.total_bytes)}")


@main.command()
@click.argument("snapshot_id")
@path_option
def show(snapshot_id, workspace_path):
    """Show the file records of one snapshot."""
    console = Console()
    workspace = _resolve_workspace(console, workspace_path)
    snapshot = _engine(console).get_snapshot(workspace, snapshot_id)
    if snapshot is None:
        console.print(f"[red]Snapshot {snapshot_id} not found.[/red]")
        raise SystemExit(1)

    title = f"{snapshot.id}  {_format_ts(snapshot.timestamp)}"
    if snapshot.message:
        title += f"  {snapshot.message}"
    table = Table(title=title)
    table.add_column("Event")
    table.add_column("Path", style="bold")
    table.add_column("Renamed to", style="dim")
    table.add_column("Size", justify="right")

    for f in snapshot.files:
        table.add_row(
            _event_label(f),
            f.path,
            f.renamed_to or "",
            format_bytes(f.size),
        )
    console.print(table)


@main.command()
@click.argument("file_path")
@path_option
def history(file_path, workspace_path):
    """Show every recorded version of a file."""
    console = Console()
    workspace = _resolve_workspace(console, workspace_path)
    entries = _engine(console).file_history(workspace, file_path)

    if not entries:
        console.print(f"[dim]No backups found for {file_path}.[/dim]")
        return

    table = Table(title=f"History of {file_path}")
    table.add_column("Snapshot", style="bold cyan")
    table.add_column("Created", style="dim")
    table.add_column("Event")
    table.add_column("Size", justify="right")

    for snapshot, record in entries:
        table.add_row(
            snapshot.id,
            _format_ts(snapshot.timestamp),
            _event_label(record),
            format_bytes(record.size),
        )
    console.print(table)


@main.command()
@click.argument("snapshot_id", required=False)
@click.option("--time", "timestamp", type=int, default=None, help="Restore the snapshot taken at this timestamp (ms).")
@click.option("--file", "file_path", default=None, help="Restore only this file to its newest backup.")
@path_option
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation prompt.")
def restore(snapshot_id, timestamp, file_path, workspace_path, yes):
    """Undo a snapshot's changes. Defaults to the most recent snapshot.

    Examples:
        shield restore snap_1737216000000
        shield restore --time 1737216000000
        shield restore --file src/index.ts
    """
    console = Console()
    workspace = _resolve_workspace(console, workspace_path)
    engine = _engine(console)

    if sum(x is not None for x in (snapshot_id, timestamp, file_path)) > 1:
        console.print("[red]Give only one of SNAPSHOT_ID, --time or --file.[/red]")
        raise SystemExit(1)

    if file_path:
        try:
            ok = engine.restore_file(workspace, file_path)
        except ShieldError as e:
            console.print(f"[red]{escape(str(e))}[/red]")
            raise SystemExit(1)
        write_log("restore_file", workspace, file=file_path, result="ok" if ok else "failed")
        if not ok:
            console.print(f"[red]Failed to restore {file_path}: backup missing or unwritable.[/red]")
            raise SystemExit(1)
        console.print(f"[green]Restored[/green] {file_path}")
        return

    if timestamp is None and snapshot_id is None:
        snapshots = engine.list_snapshots(workspace)
        if not snapshots:
            console.print("[dim]No snapshots available.[/dim]")
            return
        snapshot_id = snapshots[0].id

    if not yes:
        target = snapshot_id if snapshot_id else f"the snapshot at {timestamp}"
        confirm = input(f"Undo the changes recorded in {target}? (y/n) > ").strip().lower()
        if confirm not in ("y", "yes"):
            console.print("[dim]Cancelled.[/dim]")
            return

    try:
        if timestamp is not None:
            result = engine.restore_to_time(workspace, timestamp)
        else:
            result = engine.restore(workspace, snapshot_id)
    except ShieldError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)

    write_log(
        "restore", workspace,
        snapshot=snapshot_id or "", time=timestamp,
        restored=result.restored, failed=result.failed, deleted=result.deleted,
    )

    for path, reason in result.errors:
        console.print(f"  [red]Failed[/red] {escape(path)}  [dim]{escape(reason)}[/dim]")
    style = "green" if result.failed == 0 else "yellow"
    console.print(
        f"[bold {style}]Restored {result.restored} file(s), "
        f"{result.failed} failed, {result.deleted} removed.[/bold {style}]"
    )


@main.command()
@click.option("--days", type=click.IntRange(min=0), default=None, help="Max snapshot age in days (default: config max_age_days).")
@path_option
def clean(days, workspace_path):
    """Remove snapshots older than N days and free their backups."""
    console = Console()
    workspace = _resolve_workspace(console, workspace_path)
    if days is None:
        days = _load_config(console)["max_age_days"]
    engine = _engine(console)

    console.print(f"[bold]Cleaning snapshots older than {days} day(s)...[/bold]")
    try:
        result = engine.prune(workspace, days)
    except ShieldError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)

    write_log("prune", workspace, days=days, removed=result.removed, freed_bytes=result.freed_bytes)
    console.print(f"[bold green]Removed {result.removed} snapshot(s), freed {format_bytes(result.freed_bytes)}.[/bold green]")


@main.command()
@click.option("-n", "--limit", default=20, help="Number of log entries to show.")
@click.option("--all", "show_all", is_flag=True, help="Show logs for all workspaces.")
@path_option
def logs(limit, show_all, workspace_path):
    """Show the restore/prune audit log."""
    console = Console()
    workspace = None if show_all else _resolve_workspace(console, workspace_path)
    entries = read_logs(workspace)

    if not entries:
        console.print("[dim]No logs found.[/dim]")
        return

    table = Table(title="Audit Log")
    table.add_column("Time", style="dim")
    table.add_column("Event", style="bold")
    table.add_column("Workspace", style="dim", max_width=40)
    table.add_column("Target", style="cyan")
    table.add_column("Result")

    for entry in entries[-limit:]:
        ts = entry.get("timestamp", "")
        if ts:
            try:
                ts = datetime.fromisoformat(ts).strftime("%m-%d %H:%M")
            except ValueError:
                pass
        event = entry.get("event", "")
        if event == "prune":
            target = f"{entry.get('days')}d"
            outcome = f"{entry.get('removed', 0)} removed, {format_bytes(entry.get('freed_bytes', 0))}"
        elif event == "restore_file":
            target = entry.get("file", "")
            outcome = entry.get("result", "")
        else:
            target = entry.get("snapshot") or str(entry.get("time") or "")
            outcome = f"{entry.get('restored', 0)} ok / {entry.get('failed', 0)} failed / {entry.get('deleted', 0)} removed"
        table.add_row(ts, event, entry.get("workspace", ""), target, outcome)

    console.print(table)


@main.group(invoke_without_command=True)
@click.pass_context
def workspaces(ctx):
    """List and manage registered workspaces."""
    if ctx.invoked_subcommand is not None:
        return

    console = Console()
    try:
        registered = get_workspaces()
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)
    if not registered:
        console.print("[dim]No workspaces registered. Use 'shield workspaces add PATH'.[/dim]")
        return

    table = Table(title="Workspaces")
    table.add_column("Name", style="bold cyan")
    table.add_column("Path", style="dim")
    table.add_column("Added", style="dim")
    for w in registered:
        added = w.get("added_at")
        table.add_row(w.get("name", ""), w.get("path", ""), _format_ts(added) if added else "")
    console.print(table)


@workspaces.command("add")
@click.argument("path", type=click.Path())
def workspaces_add(path):
    """Register a workspace directory."""
    console = Console()
    try:
        entry = add_workspace(path)
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)
    console.print(f"[green]Added[/green] {entry['name']}  [dim]{entry['path']}[/dim]")


@workspaces.command("remove")
@click.argument("path", type=click.Path())
def workspaces_remove(path):
    """Unregister a workspace directory. Its backups are left on disk."""
    console = Console()
    try:
        removed = remove_workspace(path)
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)
    if removed:
        console.print(f"[red]Removed[/red] {path}")
    else:
        console.print(f"[dim]{path} was not registered.[/dim]")
