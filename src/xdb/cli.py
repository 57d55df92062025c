"""
CLI entry point for XDB.

This module provides the Typer-based command-line interface for XDB.

Commands:
    query          Run a statement against a database
    databases      List databases on disk
    create-db      Create an empty database
    drop-db        Delete a database and its file
    tables         List the tables of a database
    backup         Snapshot every database into a backup archive
    backups        List registered backups
    restore        Restore databases from a backup archive
    export-backup  Write a backup archive to a file, given its password

Settings come from --config and the XDB_* environment variables.

Architecture Note:
    The CLI is intentionally thin - it parses arguments and delegates to
    XdbContext, the same object a host application embeds.
"""

import json
import logging
from pathlib import Path
from typing import Annotated, Any, NoReturn, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from xdb import __version__
from xdb.context import XdbContext
from xdb.errors import XdbError
from xdb.schema import BackupStatus
from xdb.values import encode_value

# Initialize Typer app with metadata
app = typer.Typer(
    name="xdb",
    help="Embeddable encrypted SQL-like data store.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich console for formatted output
console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]xdb[/bold] version {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    config: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to a YAML settings file.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            help="Log storage and backup activity to stderr.",
        ),
    ] = False,
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    XDB - Encrypted single-file databases with a small SQL dialect.
    """
    _configure_logging(verbose)
    ctx.obj = {"config": config}


def _open(ctx: typer.Context) -> XdbContext:
    """Build the XDB context or exit with the configuration error."""
    try:
        return XdbContext.from_config(ctx.obj.get("config") if ctx.obj else None)
    except XdbError as e:
        _fail(e)


def _fail(error: XdbError) -> NoReturn:
    console.print(f"[red]Error:[/red] {error.message}")
    if error.suggestion:
        console.print(f"[dim]Suggestion: {error.suggestion}[/dim]")
    raise typer.Exit(code=1)


def _jsonable(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [{k: encode_value(v) for k, v in row.items()} for row in rows]


def _render(value: Any) -> str:
    if value is None:
        return "[dim]NULL[/dim]"
    if isinstance(value, bytes):
        return f"X'{value.hex()}'"
    return str(value)


@app.command()
def query(
    ctx: typer.Context,
    database: Annotated[str, typer.Argument(help="Database name.")],
    sql: Annotated[str, typer.Argument(help="Statement to run.")],
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output results in JSON format.",
        ),
    ] = False,
) -> None:
    """
    Run a statement against a database.

    Example:
        $ xdb query app "SELECT * FROM users WHERE age > 25"
    """
    xdb = _open(ctx)
    try:
        result = xdb.execute_statement(database, sql)
    except XdbError as e:
        if json_output:
            console.print_json(json.dumps(e.to_dict()))
            raise typer.Exit(code=1)
        _fail(e)

    if json_output:
        payload = result.model_dump()
        if result.rows is not None:
            payload["rows"] = _jsonable(result.rows)
        console.print_json(json.dumps(payload))
        return

    if result.rows is None:
        message = f"[green]OK[/green] {result.rows_affected or 0} row(s) affected"
        if result.insert_id is not None:
            message += f" (insert id {result.insert_id})"
        console.print(message)
        return

    if not result.rows:
        console.print("[dim]No rows.[/dim]")
        return

    columns: list[str] = []
    for row in result.rows:
        for name in row:
            if name not in columns:
                columns.append(name)

    table = Table(show_header=True, header_style="bold")
    for name in columns:
        table.add_column(name)
    for row in result.rows:
        table.add_row(*(_render(row.get(name)) for name in columns))
    console.print(table)


@app.command()
def databases(ctx: typer.Context) -> None:
    """List databases on disk."""
    xdb = _open(ctx)
    names = xdb.list_databases_on_disk()
    if not names:
        console.print("[dim]No databases found.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Database", style="cyan")
    table.add_column("Size", justify="right")
    for name in names:
        table.add_row(name, str(xdb.persistence.get_database_file_size(name)))
    console.print(table)


@app.command("create-db")
def create_db(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Database name.")],
) -> None:
    """Create an empty database."""
    xdb = _open(ctx)
    try:
        xdb.create_database(name)
    except XdbError as e:
        _fail(e)
    console.print(f"[green]Created database[/green] {name}")


@app.command("drop-db")
def drop_db(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Database name.")],
) -> None:
    """Delete a database and its file."""
    xdb = _open(ctx)
    try:
        xdb.delete_database(name)
    except XdbError as e:
        _fail(e)
    console.print(f"[green]Deleted database[/green] {name}")


@app.command()
def tables(
    ctx: typer.Context,
    database: Annotated[str, typer.Argument(help="Database name.")],
) -> None:
    """List the tables of a database with their row counts."""
    xdb = _open(ctx)
    try:
        names = xdb.list_tables(database)
        if not names:
            console.print("[dim]No tables.[/dim]")
            return

        table = Table(show_header=True, header_style="bold")
        table.add_column("Table", style="cyan")
        table.add_column("Columns")
        table.add_column("Rows", justify="right")
        for name in names:
            columns = xdb.get_table_schema(database, name)
            described = ", ".join(
                f"{c.name} {c.type.value}{' PK' if c.primary_key else ''}" for c in columns
            )
            table.add_row(name, described, str(len(xdb.get_table_rows(database, name))))
        console.print(table)
    except XdbError as e:
        _fail(e)


@app.command()
def backup(ctx: typer.Context) -> None:
    """
    Snapshot every database into a backup archive.

    The printed password is needed to download the archive later.
    """
    xdb = _open(ctx)
    try:
        result = xdb.create_backup()
    except XdbError as e:
        _fail(e)

    console.print(f"[green]Created backup[/green] [cyan]{result.backup_id}[/cyan]")
    console.print(f"  Files: {result.file_count} ({result.total_size} bytes)")
    console.print(f"  Archive: {result.archive_path}")
    console.print(f"  Password: [bold]{result.password}[/bold]")
    for evicted in result.evicted:
        console.print(f"[dim]  Evicted old backup {evicted}[/dim]")


@app.command()
def backups(ctx: typer.Context) -> None:
    """List registered backups."""
    xdb = _open(ctx)
    try:
        records = xdb.list_backups()
    except XdbError as e:
        _fail(e)

    if not records:
        console.print("[dim]No backups found.[/dim]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Backup ID", style="cyan")
    table.add_column("Created")
    table.add_column("Files", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Status", width=8)
    for record in records:
        table.add_row(
            record.backup_id,
            record.created_at.isoformat()[:19],  # Truncate to seconds
            str(record.file_count),
            str(record.total_size),
            record.status.value,
        )
    console.print(table)


@app.command()
def restore(
    ctx: typer.Context,
    archive: Annotated[
        Path,
        typer.Argument(
            help="Path to a backup archive.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
) -> None:
    """Restore databases from a backup archive."""
    xdb = _open(ctx)
    try:
        report = xdb.restore_backup(archive)
    except XdbError as e:
        _fail(e)

    if report.status == BackupStatus.SUCCESS:
        console.print(f"[green]success[/green] {report.message}")
    elif report.status == BackupStatus.PARTIAL:
        console.print(f"[yellow]partial[/yellow] {report.message}")
    else:
        console.print(f"[red]failed[/red] {report.message}")

    for failure in report.failures:
        console.print(f"  [red]✗[/red] {failure.filename}: {failure.reason}")

    if report.status == BackupStatus.FAILED:
        raise typer.Exit(code=1)


@app.command("export-backup")
def export_backup(
    ctx: typer.Context,
    backup_id: Annotated[str, typer.Argument(help="Backup ID.")],
    password: Annotated[
        str,
        typer.Option(
            "--password",
            "-p",
            help="Password returned when the backup was created.",
        ),
    ],
    out: Annotated[
        Path,
        typer.Option(
            "--out",
            "-o",
            help="File to write the archive to.",
            resolve_path=True,
        ),
    ],
) -> None:
    """Write a backup archive to a file."""
    xdb = _open(ctx)
    try:
        data = xdb.get_backup_archive(backup_id, password)
    except XdbError as e:
        _fail(e)

    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(data)
    console.print(f"[green]Wrote[/green] {out} ({len(data)} bytes)")


if __name__ == "__main__":
    app()
