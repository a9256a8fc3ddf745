"""
Mobile Services CLI

Commands for managing mobile services through the management API:
- list / show / redeploy / regenerate-key / logs: service level commands
- config list|get|set: service configuration settings
- table list|show|create|update|delete|data: tables
- script list|download|upload|delete: table, scheduler and shared scripts
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
from rich.logging import RichHandler

from .cli_context import CLIContext
from .operations import OpsConfig, run_and_exit
from .operations.facade import load_script_file, require_table, save_script_file
from .operations.printers import (
    RichPlanReporter, print_config_report, print_info, print_json, print_logs,
    print_script_listing, print_service, print_services, print_setting,
    print_table_data, print_table_report, print_tables,
)
from .routing import format_script_name, require_route

app = typer.Typer(name="mobile", help="Commands to manage your mobile services", no_args_is_help=True)
config_app = typer.Typer(help="Commands to manage your mobile service configuration", no_args_is_help=True)
table_app = typer.Typer(help="Commands to manage your mobile service tables", no_args_is_help=True)
script_app = typer.Typer(help="Commands to manage your mobile service scripts", no_args_is_help=True)
app.add_typer(config_app, name="config")
app.add_typer(table_app, name="table")
app.add_typer(script_app, name="script")


@dataclass
class GlobalOptions:
    subscription: Optional[str] = None
    json_output: bool = False
    verbose: bool = False
    ci: bool = False


def configure_logging(verbose: bool) -> None:
    """Send library logs through rich; DEBUG with --verbose, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False, markup=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.callback()
def main_callback(
    ctx: typer.Context,
    subscription: Optional[str] = typer.Option(None, "--subscription", "-s", envvar="MOBILE_SUBSCRIPTION_ID",
                                               help="Use the subscription id"),
    json_output: bool = typer.Option(False, "--json", help="Output raw JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show detailed output"),
    ci: bool = typer.Option(False, "--ci", help="CI mode (suppress progress)"),
) -> None:
    """Commands to manage your mobile services."""
    configure_logging(verbose)
    ctx.obj = GlobalOptions(subscription=subscription, json_output=json_output, verbose=verbose, ci=ci)


def _options(ctx: typer.Context) -> GlobalOptions:
    return ctx.find_root().obj or GlobalOptions()


def _context(ctx: typer.Context) -> CLIContext:
    opts = _options(ctx)
    return CLIContext.from_env(opts.subscription, OpsConfig(json_output=opts.json_output, verbose=opts.verbose))


# Services

@app.command("list")
def list_services(ctx: typer.Context) -> None:
    """List your mobile services."""

    async def _list() -> None:
        context = _context(ctx)
        async with context.operations() as ops:
            services = await ops.list_services()
        if context.config.json_output:
            print_json(services)
        else:
            print_services(services)

    run_and_exit(_list)


@app.command()
def show(ctx: typer.Context, servicename: str = typer.Argument(..., help="Mobile service name")) -> None:
    """Show details for a mobile service."""

    async def _show() -> None:
        context = _context(ctx)
        async with context.operations() as ops:
            service = await ops.show_service(servicename)
        if context.config.json_output:
            print_json(service)
        else:
            print_service(service)

    run_and_exit(_show)


@app.command()
def redeploy(ctx: typer.Context, servicename: str = typer.Argument(..., help="Mobile service name")) -> None:
    """Redeploy a mobile service."""

    async def _redeploy() -> None:
        context = _context(ctx)
        async with context.operations() as ops:
            await ops.redeploy(servicename)
        if context.config.json_output:
            print_json({})
        else:
            print_info("Service was redeployed.")

    run_and_exit(_redeploy)


@app.command("regenerate-key")
def regenerate_key(
    ctx: typer.Context,
    key_type: str = typer.Argument(..., metavar="TYPE", help="Key type: application or master"),
    servicename: str = typer.Argument(..., help="Mobile service name"),
) -> None:
    """Regenerate the mobile service key."""

    async def _regenerate() -> None:
        context = _context(ctx)
        async with context.operations() as ops:
            result = await ops.regenerate_key(servicename, key_type)
        if context.config.json_output:
            print_json(result)
        else:
            print_info(f"New {key_type} key is {(result or {}).get(key_type + 'Key')}")

    run_and_exit(_regenerate)


@app.command()
def logs(
    ctx: typer.Context,
    servicename: str = typer.Argument(..., help="Mobile service name"),
    query: Optional[str] = typer.Option(None, "--query", "-r", help="Log query; takes precedence over --type, --skip, and --top"),
    entry_type: Optional[str] = typer.Option(None, "--type", "-t", help="Filter by entry type"),
    skip: Optional[int] = typer.Option(None, "--skip", "-k", help="Skip the first <skip> number of rows"),
    top: Optional[int] = typer.Option(None, "--top", "-p", help="Return the first <top> number of remaining rows"),
) -> None:
    """Get mobile service logs."""

    async def _logs() -> None:
        context = _context(ctx)
        async with context.operations() as ops:
            result = await ops.logs(servicename, query=query, top=top, skip=skip, entry_type=entry_type)
        if context.config.json_output:
            print_json(result)
        else:
            print_logs(result)

    run_and_exit(_logs)


# Configuration

@config_app.command("list")
def config_list(ctx: typer.Context, servicename: str = typer.Argument(..., help="Mobile service name")) -> None:
    """Show your mobile service configuration settings."""

    async def _config_list() -> None:
        context = _context(ctx)
        async with context.operations() as ops:
            report = await ops.config_list(servicename)
        if context.config.json_output:
            print_json(report.sources)
        else:
            print_config_report(report)

    run_and_exit(_config_list)


@config_app.command("get")
def config_get(
    ctx: typer.Context,
    servicename: str = typer.Argument(..., help="Mobile service name"),
    key: str = typer.Argument(..., help="Setting key"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Save the value of the setting to a file"),
) -> None:
    """Get a mobile service configuration setting."""

    async def _config_get() -> None:
        context = _context(ctx)
        async with context.operations() as ops:
            value = await ops.config_get(servicename, key)
        if context.config.json_output:
            print_json({key: value})
        elif value is not None and file is not None:
            file.write_text(str(value), encoding="utf-8")
            print_info(f"Written value to {file}")
        else:
            print_setting(key, value)

    run_and_exit(_config_get)


@config_app.command("set")
def config_set(
    ctx: typer.Context,
    servicename: str = typer.Argument(..., help="Mobile service name"),
    key: str = typer.Argument(..., help="Setting key"),
    value: Optional[str] = typer.Argument(None, help="New value"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Read the value of the setting from a file"),
) -> None:
    """Set a mobile service configuration setting."""

    async def _config_set() -> None:
        new_value = value
        if new_value is None:
            if file is None:
                raise ValueError("Either value parameter must be provided or --file option specified")
            new_value = file.read_text(encoding="utf-8")
            print_info(f"Value was read from {file}")

        context = _context(ctx)
        async with context.operations() as ops:
            await ops.config_set(servicename, key, new_value)

    run_and_exit(_config_set)


# Tables

@table_app.command("list")
def table_list(ctx: typer.Context, servicename: str = typer.Argument(..., help="Mobile service name")) -> None:
    """List mobile service tables."""

    async def _table_list() -> None:
        context = _context(ctx)
        async with context.operations() as ops:
            tables = await ops.table_list(servicename)
        if context.config.json_output:
            print_json(tables)
        else:
            print_tables(tables)

    run_and_exit(_table_list)


@table_app.command("show")
def table_show(
    ctx: typer.Context,
    servicename: str = typer.Argument(..., help="Mobile service name"),
    tablename: str = typer.Argument(..., help="Table name"),
) -> None:
    """Show details for a mobile service table."""

    async def _table_show() -> None:
        context = _context(ctx)
        async with context.operations() as ops:
            report = await ops.table_show(servicename, tablename)
        if context.config.json_output:
            print_json(report.as_dict())
            return
        require_table(report, servicename, tablename)
        print_table_report(report)

    run_and_exit(_table_show)


@table_app.command("create")
def table_create(
    ctx: typer.Context,
    servicename: str = typer.Argument(..., help="Mobile service name"),
    tablename: str = typer.Argument(..., help="Table name"),
    insert: Optional[str] = typer.Option(None, "--insert", "-i", help="Authorization role for insert operations"),
    read: Optional[str] = typer.Option(None, "--read", "-q", help="Authorization role for read operations"),
    update: Optional[str] = typer.Option(None, "--update", "-u", help="Authorization role for update operations"),
    delete: Optional[str] = typer.Option(None, "--delete", "-d", help="Authorization role for delete operations"),
) -> None:
    """Create a mobile service table."""

    async def _table_create() -> None:
        context = _context(ctx)
        permissions = {"insert": insert, "read": read, "update": update, "delete": delete}
        async with context.operations() as ops:
            await ops.table_create(servicename, tablename, permissions)
        print_info(f"Created table {tablename}")

    run_and_exit(_table_create)


@table_app.command("update")
def table_update(
    ctx: typer.Context,
    servicename: str = typer.Argument(..., help="Mobile service name"),
    tablename: str = typer.Argument(..., help="Table name"),
    insert_role: Optional[str] = typer.Option(None, "--insertRole", "-i", help="Authorization role for insert operations"),
    read_role: Optional[str] = typer.Option(None, "--readRole", "-q", help="Authorization role for query operations"),
    update_role: Optional[str] = typer.Option(None, "--updateRole", "-u", help="Authorization role for update operations"),
    delete_role: Optional[str] = typer.Option(None, "--deleteRole", "-d", help="Authorization role for delete operations"),
    delete_column: Optional[str] = typer.Option(None, "--deleteColumn", help="Comma separated list of columns to delete"),
    add_index: Optional[str] = typer.Option(None, "--addIndex", help="Comma separated list of columns to create an index on"),
    delete_index: Optional[str] = typer.Option(None, "--deleteIndex", help="Comma separated list of columns to delete an index from"),
) -> None:
    """Update mobile service table properties."""

    async def _table_update() -> None:
        context = _context(ctx)
        permissions = {"insert": insert_role, "read": read_role, "update": update_role, "delete": delete_role}
        reporter = RichPlanReporter(ci_mode=_options(ctx).ci)
        async with context.operations() as ops:
            outcome = await ops.table_update(
                servicename, tablename,
                permissions=permissions,
                delete_index=delete_index,
                add_index=add_index,
                delete_column=delete_column,
                reporter=reporter,
            )
        if outcome.empty:
            print_info("No updates performed. Check the list of available updates with --help.")
            return
        outcome.raise_for_failures()

    run_and_exit(_table_update)


@table_app.command("delete")
def table_delete(
    ctx: typer.Context,
    servicename: str = typer.Argument(..., help="Mobile service name"),
    tablename: str = typer.Argument(..., help="Table name"),
) -> None:
    """Delete a mobile service table."""

    async def _table_delete() -> None:
        context = _context(ctx)
        async with context.operations() as ops:
            await ops.table_delete(servicename, tablename)
        print_info(f"Deleted table {tablename}")

    run_and_exit(_table_delete)


@table_app.command("data")
def table_data(
    ctx: typer.Context,
    servicename: str = typer.Argument(..., help="Mobile service name"),
    tablename: str = typer.Argument(..., help="Table name"),
    query: Optional[str] = typer.Argument(None, help="Raw query string, e.g. $filter=complete eq true"),
    skip: Optional[int] = typer.Option(None, "--skip", "-k", help="Skip the first <skip> number of rows"),
    top: Optional[int] = typer.Option(None, "--top", "-t", help="Return the first <top> number of remaining rows"),
    as_list: bool = typer.Option(False, "--list", "-l", help="Display results in list format"),
) -> None:
    """Query data from a mobile service table."""

    async def _table_data() -> None:
        context = _context(ctx)
        async with context.operations() as ops:
            records = await ops.table_data(servicename, tablename, query=query, top=top, skip=skip)
        if context.config.json_output:
            print_json(records)
        else:
            print_table_data(records, as_list=as_list)

    run_and_exit(_table_data)


# Scripts

@script_app.command("list")
def script_list(ctx: typer.Context, servicename: str = typer.Argument(..., help="Mobile service name")) -> None:
    """List mobile service scripts."""

    async def _script_list() -> None:
        context = _context(ctx)
        async with context.operations() as ops:
            listing = await ops.script_list(servicename)
        if context.config.json_output:
            print_json(listing.as_dict())
        else:
            print_script_listing(listing)

    run_and_exit(_script_list)


@script_app.command("download")
def script_download(
    ctx: typer.Context,
    servicename: str = typer.Argument(..., help="Mobile service name"),
    scriptname: str = typer.Argument(..., help="Script name, e.g. table/todoitem.insert"),
    path: str = typer.Option(".", "--path", "-p", help="Filesystem location to save the script to"),
    file: Optional[str] = typer.Option(None, "--file", "-f", help="File to save the script to"),
    override: bool = typer.Option(False, "--override", "-o", help="Override existing files"),
    console: bool = typer.Option(False, "--console", "-c", help="Write the script to the console instead of a file"),
) -> None:
    """Download a mobile service script."""

    async def _script_download() -> None:
        context = _context(ctx)
        async with context.operations() as ops:
            descriptor, source = await ops.script_download(servicename, scriptname)
        if console:
            typer.echo(source)
            return
        saved = save_script_file(descriptor, source, file=file, base_dir=path, overwrite=override)
        print_info(f"Saved script to {saved}")

    run_and_exit(_script_download)


@script_app.command("upload")
def script_upload(
    ctx: typer.Context,
    servicename: str = typer.Argument(..., help="Mobile service name"),
    scriptname: str = typer.Argument(..., help="Script name, e.g. scheduler/cleanup"),
    file: Optional[str] = typer.Option(None, "--file", "-f", help="File to read the script from"),
) -> None:
    """Upload a mobile service script."""

    async def _script_upload() -> None:
        # Validate the name before touching the file system
        descriptor = require_route(scriptname)
        _, source = load_script_file(descriptor, file=file)

        context = _context(ctx)
        async with context.operations() as ops:
            await ops.script_upload(servicename, scriptname, source)
        print_info(f"Uploaded script {format_script_name(descriptor)}")

    run_and_exit(_script_upload)


@script_app.command("delete")
def script_delete(
    ctx: typer.Context,
    servicename: str = typer.Argument(..., help="Mobile service name"),
    scriptname: str = typer.Argument(..., help="Script name"),
) -> None:
    """Delete a mobile service script."""

    async def _script_delete() -> None:
        context = _context(ctx)
        async with context.operations() as ops:
            descriptor = await ops.script_delete(servicename, scriptname)
        print_info(f"Deleted script {format_script_name(descriptor)}")

    run_and_exit(_script_delete)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
