"""
Operations Facade - Application service layer.

Provides a clean interface between CLI and the management API, centralizing
command orchestration (fan-out reports, sequential update plans, script
routing) while keeping CLI commands thin and testable.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..accessors import SettingKey, coerce_setting_value, get_setting, parse_setting_key, set_setting
from ..aggregation import CollectionJob, CollectionResult, PlanOutcome, PlanStep, execute
from ..api import KeyType, MobileServiceApi, SettingsResource
from ..errors import ResourceNotFound
from ..routing import ResourceDescriptor, TableOperation, default_script_path, require_route
from ..runtime_types import PlanReporter

__all__ = [
    "Operations",
    "OpsConfig",
    "ConfigReport",
    "TableReport",
    "ScriptListing",
    "ROLES",
    "NOT_CONFIGURED",
    "UNAVAILABLE",
    "merge_config_report",
    "validate_permissions",
    "build_table_update_plan",
    "require_table",
    "save_script_file",
    "load_script_file",
]

ROLES = ("user", "public", "application", "admin")
NOT_CONFIGURED = "Not configured"
UNAVAILABLE = "Unable to obtain the value of this setting"

_AUTH_PROVIDERS = ("twitter", "facebook", "google")


@dataclass(frozen=True)
class OpsConfig:
    """
    Configuration for Operations facade.

    Centralizes policy decisions like output format and deadlines to avoid
    scattered configuration.
    """
    json_output: bool = False               # Emit raw JSON instead of tables
    verbose: bool = False                   # Show detailed output
    action_timeout_s: Optional[float] = None  # Deadline per fan-out action / plan step


@dataclass
class ConfigReport:
    """Display values for every setting key plus the raw settings objects read."""
    settings: Dict[str, str]
    sources: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TableReport:
    """Table details gathered from independent reads; None marks a failed read."""
    table: Optional[dict] = None
    permissions: Optional[dict] = None
    columns: Optional[List[dict]] = None
    scripts: Optional[List[dict]] = None

    def as_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in vars(self).items() if v is not None}


@dataclass
class ScriptListing:
    """Scripts of a service by kind; None marks a kind that could not be listed."""
    table: Optional[List[dict]] = None
    shared: Optional[List[dict]] = None
    scheduler: Optional[List[dict]] = None

    def as_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in vars(self).items() if v is not None}


def _display(value: Any) -> str:
    if value is None or value == "":
        return NOT_CONFIGURED
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


def _as_dict(value: Any) -> Dict[str, Any]:
    # Malformed payloads read as empty settings objects
    return value if isinstance(value, dict) else {}


def merge_config_report(outcome: CollectionResult) -> ConfigReport:
    """
    Merge the five settings reads into one display value per setting key.

    Settings whose source read failed show UNAVAILABLE; settings whose
    source was read but which have no value show NOT_CONFIGURED.
    """
    settings = {key.value: UNAVAILABLE for key in SettingKey}

    service = outcome.get(SettingsResource.SERVICE.value)
    if SettingsResource.SERVICE.value in outcome:
        flag = service.get("dynamicSchemaEnabled") if isinstance(service, dict) else None
        settings[SettingKey.DYNAMIC_SCHEMA_ENABLED.value] = _display(flag) if isinstance(flag, bool) else NOT_CONFIGURED

    if SettingsResource.LOG.value in outcome:
        log = _as_dict(outcome.get(SettingsResource.LOG.value))
        settings[SettingKey.LOG_LEVEL.value] = _display(log.get("logLevel"))

    if SettingsResource.LIVE.value in outcome:
        live = _as_dict(outcome.get(SettingsResource.LIVE.value))
        settings[SettingKey.MICROSOFT_ACCOUNT_CLIENT_SECRET.value] = _display(live.get("clientSecret"))
        settings[SettingKey.MICROSOFT_ACCOUNT_CLIENT_ID.value] = _display(live.get("clientID"))
        settings[SettingKey.MICROSOFT_ACCOUNT_PACKAGE_SID.value] = _display(live.get("packageSID"))

    if SettingsResource.APNS.value in outcome:
        apns = _as_dict(outcome.get(SettingsResource.APNS.value))
        settings[SettingKey.APNS_MODE.value] = _display(apns.get("mode"))
        settings[SettingKey.APNS_PASSWORD.value] = _display(apns.get("password"))
        settings[SettingKey.APNS_CERTIFICATE.value] = _display(apns.get("certificate"))

    auth = outcome.get(SettingsResource.AUTH.value)
    if isinstance(auth, list):
        for provider in _AUTH_PROVIDERS:
            settings[f"{provider}ClientId"] = NOT_CONFIGURED
            settings[f"{provider}ClientSecret"] = NOT_CONFIGURED
        for creds in auth:
            if not isinstance(creds, dict):
                continue
            provider = creds.get("provider")
            if provider in _AUTH_PROVIDERS:
                settings[f"{provider}ClientId"] = _display(creds.get("appId"))
                settings[f"{provider}ClientSecret"] = _display(creds.get("secret"))

    return ConfigReport(settings=settings, sources=dict(outcome.results))


def validate_permissions(permissions: Mapping[str, Optional[str]]) -> Dict[str, str]:
    """
    Check per-operation authorization roles and drop unset ones.

    Raises:
        ValueError: If a role is not one of ROLES
    """
    checked: Dict[str, str] = {}
    for operation in TableOperation:
        role = permissions.get(operation.value)
        if not role:
            continue
        if role not in ROLES:
            raise ValueError(
                f"Authorization role for {operation.value} operation must be one of {', '.join(ROLES)}."
            )
        checked[operation.value] = role
    return checked


def _split_columns(columns: Optional[str]) -> List[str]:
    if not columns:
        return []
    return [c for c in columns.split(",") if c]


def build_table_update_plan(api: MobileServiceApi, service: str, table: str, *,
                            permissions: Optional[Mapping[str, str]] = None,
                            delete_index: Optional[str] = None,
                            add_index: Optional[str] = None,
                            delete_column: Optional[str] = None) -> List[PlanStep]:
    """
    Build the ordered steps of a table update.

    Order: permissions, index deletions, index additions, column deletions.
    Column arguments are comma separated lists.
    """
    plan: List[PlanStep] = []

    if permissions:
        body = dict(permissions)
        plan.append(PlanStep(
            progress="Updating permissions",
            action=lambda: api.update_permissions(service, table, body),
            success="Updated permissions",
            failure="Failed to update permissions",
        ))

    for column in _split_columns(delete_index):
        plan.append(PlanStep(
            progress=f"Deleting index from column {column}",
            action=lambda column=column: api.delete_index(service, table, column),
            success=f"Deleted index from column {column}",
            failure=f"Failed to delete index from column {column}",
        ))

    for column in _split_columns(add_index):
        plan.append(PlanStep(
            progress=f"Adding index to column {column}",
            action=lambda column=column: api.create_index(service, table, column),
            success=f"Added index to column {column}",
            failure=f"Failed to add index to column {column}",
        ))

    for column in _split_columns(delete_column):
        plan.append(PlanStep(
            progress=f"Deleting column {column}",
            action=lambda column=column: api.delete_column(service, table, column),
            success=f"Deleted column {column}",
            failure=f"Failed to delete column {column}",
        ))

    return plan


class Operations:
    """
    Application service facade for CLI operations.

    One coroutine per CLI verb. Reports that combine several remote reads
    go through the fan-out collector so partial data is still shown when
    some reads fail; table updates go through the sequential plan executor
    so every requested change is attempted. Exceptions bubble up for
    central exit code mapping.
    """

    def __init__(self, config: OpsConfig, api: MobileServiceApi):
        """
        Initialize Operations facade.

        Args:
            config: Configuration settings
            api: Management API bound to a subscription
        """
        self.cfg = config
        self.api = api

    # Services

    async def list_services(self) -> List[dict]:
        return await self.api.list_services() or []

    async def show_service(self, service: str) -> dict:
        return await self.api.get_service(service)

    async def redeploy(self, service: str) -> None:
        await self.api.redeploy(service)

    async def regenerate_key(self, service: str, key_type: str) -> dict:
        """
        Regenerate the application or master key.

        Raises:
            ValueError: If ``key_type`` is not ``application`` or ``master``
        """
        try:
            kind = KeyType(key_type)
        except ValueError:
            raise ValueError('The key type must be "application" or "master".') from None
        return await self.api.regenerate_key(service, kind)

    async def logs(self, service: str, *, query: Optional[str] = None, top: Optional[int] = None,
                   skip: Optional[int] = None, entry_type: Optional[str] = None) -> dict:
        return await self.api.get_logs(service, query=query, top=top, skip=skip, entry_type=entry_type)

    # Configuration

    async def config_list(self, service: str) -> ConfigReport:
        """
        Read all settings objects concurrently and merge them for display.

        Sources that fail are reported as UNAVAILABLE rather than failing
        the whole command.
        """
        def reader(resource: SettingsResource):
            return lambda: self.api.read_settings(service, resource)

        job = CollectionJob(
            actions={resource.value: reader(resource) for resource in SettingsResource},
            merge=merge_config_report,
        )
        return await job.run(timeout=self.cfg.action_timeout_s)

    async def config_get(self, service: str, key: str) -> Any:
        """
        Read one setting; None means it is not configured.

        Raises:
            UnknownSettingKey: If ``key`` is not supported
        """
        return await get_setting(self.api, service, parse_setting_key(key))

    async def config_set(self, service: str, key: str, value: str) -> None:
        """
        Change one setting from its CLI text form.

        Raises:
            UnknownSettingKey: If ``key`` is not supported
            InvalidSettingValue: If ``value`` is not valid for ``key``
        """
        setting = parse_setting_key(key)
        await set_setting(self.api, service, setting, coerce_setting_value(setting, value))

    # Tables

    async def table_list(self, service: str) -> List[dict]:
        return await self.api.list_tables(service) or []

    async def table_show(self, service: str, table: str) -> TableReport:
        """Read table details, permissions, columns and scripts concurrently."""
        job = CollectionJob(
            actions={
                "table": lambda: self.api.get_table(service, table),
                "permissions": lambda: self.api.get_permissions(service, table),
                "columns": lambda: self.api.get_columns(service, table),
                "scripts": lambda: self.api.get_table_scripts(service, table),
            },
            merge=lambda outcome: TableReport(**outcome.results),
        )
        return await job.run(timeout=self.cfg.action_timeout_s)

    async def table_create(self, service: str, table: str,
                           permissions: Optional[Mapping[str, Optional[str]]] = None) -> None:
        """
        Create a table with optional per-operation roles.

        Raises:
            ValueError: If a role is invalid
        """
        settings: Dict[str, str] = {"name": table}
        settings.update(validate_permissions(permissions or {}))
        await self.api.create_table(service, settings)

    async def table_update(self, service: str, table: str, *,
                           permissions: Optional[Mapping[str, Optional[str]]] = None,
                           delete_index: Optional[str] = None,
                           add_index: Optional[str] = None,
                           delete_column: Optional[str] = None,
                           reporter: Optional[PlanReporter] = None) -> PlanOutcome:
        """
        Apply table changes as a sequential plan.

        Every step runs even if earlier ones fail. The returned outcome is
        empty when no change was requested.

        Raises:
            ValueError: If a role is invalid (checked before any step runs)
        """
        plan = build_table_update_plan(
            self.api, service, table,
            permissions=validate_permissions(permissions or {}),
            delete_index=delete_index,
            add_index=add_index,
            delete_column=delete_column,
        )
        return await execute(plan, reporter, timeout=self.cfg.action_timeout_s)

    async def table_delete(self, service: str, table: str) -> None:
        await self.api.delete_table(service, table)

    async def table_data(self, service: str, table: str, *, query: Optional[str] = None,
                         top: Optional[int] = None, skip: Optional[int] = None) -> List[dict]:
        return await self.api.get_data(service, table, query=query, top=top, skip=skip)

    # Scripts

    async def script_list(self, service: str) -> ScriptListing:
        """List table, shared and scheduler scripts; kinds that fail are None."""
        job = CollectionJob(
            actions={
                "table": lambda: self.api.get_all_table_scripts(service, timeout=self.cfg.action_timeout_s),
                "shared": lambda: self.api.list_shared_scripts(service),
                "scheduler": lambda: self.api.list_scheduler_jobs(service),
            },
            merge=lambda outcome: ScriptListing(**outcome.results),
        )
        return await job.run(timeout=self.cfg.action_timeout_s)

    async def script_download(self, service: str, script_name: str) -> Tuple[ResourceDescriptor, str]:
        """
        Fetch a script's source.

        Raises:
            ScriptNameNotRecognized: If ``script_name`` is not a valid script name
        """
        descriptor = require_route(script_name)
        source = await self.api.get_script(service, descriptor)
        return descriptor, source if source is not None else ""

    async def script_upload(self, service: str, script_name: str, source: str) -> ResourceDescriptor:
        descriptor = require_route(script_name)
        await self.api.set_script(service, descriptor, source)
        return descriptor

    async def script_delete(self, service: str, script_name: str) -> ResourceDescriptor:
        descriptor = require_route(script_name)
        await self.api.delete_script(service, descriptor)
        return descriptor


def require_table(report: TableReport, service: str, table: str) -> dict:
    """Return the table details of a report, or raise if they could not be read."""
    if report.table is None:
        raise ResourceNotFound(f"Table {table} or mobile service {service} does not exist.")
    return report.table


def save_script_file(descriptor: ResourceDescriptor, source: str, *, file: Optional[str] = None,
                     base_dir: str = ".", overwrite: bool = False) -> Path:
    """
    Write a downloaded script to disk.

    Without ``file`` the script goes to its default location under
    ``base_dir`` (e.g. ``table/orders.read.js``), creating the directory.

    Raises:
        ValueError: If the file exists and ``overwrite`` is not set
    """
    path = Path(file) if file else Path(default_script_path(descriptor, base_dir))
    if path.exists() and not overwrite:
        raise ValueError(f"File {path} already exists. Use --override to override.")

    if not file:
        path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(source, encoding="utf-8")
    return path


def load_script_file(descriptor: ResourceDescriptor, *, file: Optional[str] = None,
                     base_dir: str = ".") -> Tuple[Path, str]:
    """
    Read a script to upload from ``file`` or its default location.

    Raises:
        ValueError: If the file cannot be read
    """
    path = Path(file) if file else Path(default_script_path(descriptor, base_dir))
    try:
        return path, path.read_text(encoding="utf-8")
    except OSError as e:
        raise ValueError(f"Unable to read script from file {path}") from e
