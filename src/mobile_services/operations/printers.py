"""
Human-readable output formatting.

Centralizes all CLI output formatting (tables, key/value listings, JSON mode
and plan progress) while keeping CLI commands thin and focused.
"""
from __future__ import annotations

import json
from typing import Any, Iterable, List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.status import Status
from rich.table import Table

from ..errors import ScriptNameNotRecognized, UnknownSettingKey
from .facade import NOT_CONFIGURED, UNAVAILABLE, ConfigReport, ScriptListing, TableReport

_console = Console()
_err_console = Console(stderr=True)

_TABLE_OPERATIONS = ("insert", "read", "update", "delete")


def _cell(value: Any) -> str:
    # Remote text must not be read as rich markup
    return escape(str(value))


def print_json(data: Any) -> None:
    """Print raw data as JSON (``--json`` mode)."""
    typer.echo(json.dumps(data, indent=2, sort_keys=True, default=str))


def print_info(message: str) -> None:
    _console.print(escape(message))


def print_data(name: str, value: Any, style: str = "green") -> None:
    """Print one ``name: value`` line."""
    _console.print(f"[bold]{escape(name)}:[/] [{style}]{escape(str(value))}[/]")


def print_error(exc: BaseException) -> None:
    """
    Print an error for the user.

    Unknown setting keys list the supported keys; unrecognized script names
    list the accepted naming conventions.
    """
    if isinstance(exc, UnknownSettingKey) and exc.supported:
        _err_console.print("Supported keys:")
        for key in exc.supported:
            _err_console.print(f"  [blue]{escape(key)}[/]")
    elif isinstance(exc, ScriptNameNotRecognized):
        for hint in ScriptNameNotRecognized.HINTS:
            _err_console.print(escape(hint))
    _err_console.print(f"[red]error:[/] {escape(str(exc))}")


def print_services(services: List[dict]) -> None:
    if not services:
        print_info("No mobile services created yet. You can create new mobile services through the portal.")
        return

    table = Table()
    table.add_column("Name", style="cyan")
    table.add_column("State")
    table.add_column("URL")
    for service in services:
        table.add_row(_cell(service.get("name", "")), _cell(service.get("state", "")),
                      _cell(service.get("applicationUrl", "")))
    _console.print(table)


def print_service(service: dict) -> None:
    for item in ("name", "state", "applicationUrl", "applicationKey", "masterKey", "webspace", "region"):
        if service.get(item):
            print_data(item, service[item])

    tables = service.get("tables") or []
    if tables:
        print_data("tables", ",".join(t["name"] for t in tables))
    else:
        print_info("No tables are created. Use the table create command to create tables.")


def print_logs(logs: Optional[dict]) -> None:
    entries = (logs or {}).get("results") or []
    if not entries:
        print_info("There are no matching log entries.")
        return

    for entry in entries:
        _console.print()
        for name, value in entry.items():
            print_data(name, value, style="default")
    _console.print()


def _setting_style(value: str) -> str:
    if value == NOT_CONFIGURED:
        return "blue"
    if value == UNAVAILABLE:
        return "red"
    return "green"


def print_config_report(report: ConfigReport) -> None:
    """Print every setting, coloured by whether it is set, unset or unavailable."""
    for name, value in report.settings.items():
        print_data(name, value, style=_setting_style(value))


def print_setting(key: str, value: Any) -> None:
    if value is None or value == "":
        _console.print(f"[blue]Setting {escape(key)} is not configured[/]")
    else:
        print_data(key, str(value).lower() if isinstance(value, bool) else value)


def print_tables(tables: List[dict]) -> None:
    if not tables:
        print_info("No tables created yet. You can create a mobile service table using the table create command.")
        return

    table = Table()
    table.add_column("Name", style="cyan")
    table.add_column("Indexes", justify="right")
    table.add_column("Rows", justify="right")
    table.add_column("Bytes", justify="right")
    for t in tables:
        metrics = t.get("metrics") or {}
        table.add_row(_cell(t.get("name", "")), _cell(metrics.get("indexCount", "")),
                      _cell(metrics.get("recordCount", "")), _cell(metrics.get("sizeBytes", "")))
    _console.print(table)


def print_table_report(report: TableReport) -> None:
    """
    Print table statistics, per-operation scripts and permissions, and columns.

    Sections whose source could not be read show N/A or an error line.
    """
    metrics = (report.table or {}).get("metrics") or {}
    _console.print("[green]Table statistics:[/]")
    print_data("Number of records", metrics.get("recordCount", 0))
    print_data("Size in bytes", metrics.get("sizeBytes", 0))

    _console.print("[green]Table operations:[/]")
    ops = Table()
    ops.add_column("Operation", style="cyan")
    ops.add_column("Script")
    ops.add_column("Permissions")
    for operation in _TABLE_OPERATIONS:
        if report.scripts is not None:
            script = next((s for s in report.scripts if s.get("operation") == operation), None)
            script_cell = f"{script.get('sizeBytes', '')} bytes" if script else "Not defined"
        else:
            script_cell = "N/A"

        if report.permissions is not None:
            permission_cell = report.permissions.get(operation) or "default"
        else:
            permission_cell = "N/A"

        ops.add_row(operation, _cell(script_cell), _cell(permission_cell))
    _console.print(ops)

    if report.columns is not None:
        _console.print("[green]Table columns:[/]")
        columns = Table()
        columns.add_column("Name", style="cyan")
        columns.add_column("Type")
        columns.add_column("Indexed")
        for column in report.columns:
            columns.add_row(_cell(column.get("name", "")), _cell(column.get("type", "")),
                            "Yes" if column.get("indexed") else "")
        _console.print(columns)
    else:
        _err_console.print("[red]Unable to obtain table columns[/]")


def print_table_data(records: Any, as_list: bool = False) -> None:
    if not isinstance(records, list) or not records:
        print_info("No matching records found")
        return

    if as_list:
        for record in records:
            _console.print()
            for name, value in record.items():
                print_data(name, "<null>" if value is None else value)
        _console.print()
        return

    columns: List[str] = []
    for record in records:
        for name in record:
            if name not in columns:
                columns.append(name)

    table = Table()
    for name in columns:
        table.add_column(_cell(name))
    for record in records:
        table.add_row(*(_cell(record.get(name, "")) for name in columns))
    _console.print(table)


def _print_script_section(title: str, scripts: Optional[List[dict]], missing: str, empty: str,
                          columns: Iterable[str], row) -> None:
    if scripts is None:
        _err_console.print(f"[red]{escape(missing)}[/]")
        return
    if not scripts:
        print_info(empty)
        return

    _console.print(f"[green]{escape(title)}[/]")
    table = Table()
    for name in columns:
        table.add_column(name)
    for script in scripts:
        table.add_row(*(_cell(cell) for cell in row(script)))
    _console.print(table)


def print_script_listing(listing: ScriptListing) -> None:
    """Print table, shared and scheduler scripts; failed sources show an error line."""
    _print_script_section(
        "Table scripts", listing.table,
        missing="Unable to get table scripts",
        empty="There are no table scripts. Create scripts using the script upload command.",
        columns=("Name", "Size"),
        row=lambda s: (f"table/{s.get('table')}.{s.get('operation')}", s.get("sizeBytes", "")),
    )
    _print_script_section(
        "Shared scripts", listing.shared,
        missing="Unable to get shared scripts",
        empty="There are no shared scripts. Create scripts using the script upload command.",
        columns=("Name", "Size"),
        row=lambda s: (f"shared/{s.get('name')}", s.get("sizeBytes", "")),
    )
    _print_script_section(
        "Scheduler scripts", listing.scheduler,
        missing="Unable to get scheduler scripts",
        empty="There are no scheduler scripts.",
        columns=("Name", "Status", "Interval", "Last run", "Next run"),
        row=lambda s: (f"scheduler/{s.get('name')}", s.get("status", ""), s.get("interval", ""),
                       s.get("lastRun", ""), s.get("nextRun", "")),
    )


class RichPlanReporter:
    """
    Plan reporter showing a spinner while a step runs and its outcome after.

    In CI mode the spinner is suppressed and only outcomes are printed.
    """

    def __init__(self, console: Optional[Console] = None, ci_mode: bool = False):
        self.console = console or _console
        self.ci_mode = ci_mode
        self._status: Optional[Status] = None

    def _stop(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None

    def step_started(self, label: str) -> None:
        if not self.ci_mode:
            self._status = self.console.status(escape(label))
            self._status.start()

    def step_succeeded(self, label: str) -> None:
        self._stop()
        self.console.print(f"[green]info:[/] {escape(label)}")

    def step_failed(self, label: str) -> None:
        self._stop()
        self.console.print(f"[red]error:[/] {escape(label)}")
