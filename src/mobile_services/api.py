"""
Mobile service management API.

Thin, per-endpoint wrappers around the resource operation capability. Each
method builds the path for one remote resource under a named mobile service
and delegates to the channel; the orchestration layer composes these calls.
"""
from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .aggregation import collect
from .errors import UnsupportedSharedScript
from .routing import (
    APNS_FEEDBACK,
    ResourceDescriptor,
    SchedulerScript,
    SharedScript,
    TableScript,
)
from .runtime_types import Method, ResourceOperation

logger = logging.getLogger(__name__)

__all__ = ["MobileServiceApi", "SettingsResource", "KeyType", "parse_query"]

JSON_CONTENT = {"Content-Type": "application/json"}
TEXT_CONTENT = {"Content-Type": "text/plain"}


class SettingsResource(str, Enum):
    """Settings objects a mobile service exposes."""
    SERVICE = "service"
    LIVE = "live"
    AUTH = "auth"
    APNS = "apns"
    LOG = "log"


# resource -> (path below the service, write verb)
_SETTINGS_ENDPOINTS: Dict[SettingsResource, Tuple[Tuple[str, ...], Method]] = {
    SettingsResource.SERVICE: (("settings",), "PATCH"),
    SettingsResource.LIVE: (("livesettings",), "PUT"),
    SettingsResource.AUTH: (("authsettings",), "PUT"),
    SettingsResource.APNS: (("apns", "settings"), "POST"),
    SettingsResource.LOG: (("logsettings",), "PUT"),
}


class KeyType(str, Enum):
    APPLICATION = "application"
    MASTER = "master"


def parse_query(query: str) -> Dict[str, str]:
    """
    Split a raw ``a=b&c=d`` query string into parameters.

    Raises:
        ValueError: If a pair does not contain exactly one ``=``
    """
    params: Dict[str, str] = {}
    for pair in query.split("&"):
        kv = pair.split("=")
        if len(kv) != 2:
            raise ValueError("Invalid format of query parameter")
        params[kv[0]] = kv[1]
    return params


def _paging_query(query: Optional[str], top: Optional[int], skip: Optional[int]) -> Dict[str, str]:
    # A raw query takes precedence over paging options
    if query:
        return parse_query(query)
    params = {"$top": str(top or 10)}
    if skip:
        params["$skip"] = str(skip)
    return params


class MobileServiceApi:
    """
    Operations on the mobile services of one subscription.

    Methods that act on a single service take its name as the first
    argument; the channel is already bound to the subscription.
    """

    def __init__(self, channel: ResourceOperation):
        self.channel = channel

    async def _call(self, method: Method, *path: str, query: Optional[Mapping[str, str]] = None,
                    headers: Optional[Mapping[str, str]] = None, body: Any = None) -> Any:
        return await self.channel.invoke(method, list(path), query=query, headers=headers, body=body)

    # Services

    async def list_services(self) -> List[dict]:
        return await self._call("GET")

    async def get_service(self, service: str) -> dict:
        return await self._call("GET", service)

    async def regenerate_key(self, service: str, key_type: KeyType) -> dict:
        return await self._call("POST", service, "regenerateKey", query={"type": KeyType(key_type).value})

    async def redeploy(self, service: str) -> Any:
        return await self._call("POST", service, "redeploy")

    async def get_logs(self, service: str, *, query: Optional[str] = None, top: Optional[int] = None,
                       skip: Optional[int] = None, entry_type: Optional[str] = None) -> dict:
        """
        Fetch service log entries.

        Args:
            service: Mobile service name
            query: Raw query string; takes precedence over the other filters
            top: Number of entries to return (default 10)
            skip: Number of entries to skip
            entry_type: Only return entries of this type (e.g. ``error``)
        """
        params = _paging_query(query, top, skip)
        if not query and entry_type:
            params["$filter"] = f"Type eq '{entry_type}'"
        return await self._call("GET", service, "logs", query=params)

    # Settings

    async def read_settings(self, service: str, resource: SettingsResource) -> Any:
        path, _ = _SETTINGS_ENDPOINTS[SettingsResource(resource)]
        return await self._call("GET", service, *path)

    async def write_settings(self, service: str, resource: SettingsResource, settings: str) -> Any:
        """Write a settings object; ``settings`` is the serialized JSON body."""
        path, method = _SETTINGS_ENDPOINTS[SettingsResource(resource)]
        return await self._call(method, service, *path, headers=JSON_CONTENT, body=settings)

    # Tables

    async def list_tables(self, service: str) -> List[dict]:
        return await self._call("GET", service, "tables")

    async def get_table(self, service: str, table: str) -> dict:
        return await self._call("GET", service, "tables", table)

    async def create_table(self, service: str, settings: Mapping[str, str]) -> Any:
        return await self._call("POST", service, "tables", headers=JSON_CONTENT, body=json.dumps(settings))

    async def delete_table(self, service: str, table: str) -> Any:
        return await self._call("DELETE", service, "tables", table)

    async def get_permissions(self, service: str, table: str) -> dict:
        return await self._call("GET", service, "tables", table, "permissions")

    async def update_permissions(self, service: str, table: str, permissions: Mapping[str, str]) -> Any:
        return await self._call("PUT", service, "tables", table, "permissions",
                                headers=JSON_CONTENT, body=json.dumps(permissions))

    async def get_table_scripts(self, service: str, table: str) -> List[dict]:
        return await self._call("GET", service, "tables", table, "scripts")

    async def get_columns(self, service: str, table: str) -> List[dict]:
        return await self._call("GET", service, "tables", table, "columns")

    async def delete_column(self, service: str, table: str, column: str) -> Any:
        return await self._call("DELETE", service, "tables", table, "columns", column)

    async def create_index(self, service: str, table: str, column: str) -> Any:
        return await self._call("PUT", service, "tables", table, "indexes", column)

    async def delete_index(self, service: str, table: str, column: str) -> Any:
        return await self._call("DELETE", service, "tables", table, "indexes", column)

    async def get_data(self, service: str, table: str, *, query: Optional[str] = None,
                       top: Optional[int] = None, skip: Optional[int] = None) -> List[dict]:
        return await self._call("GET", service, "tables", table, "data", query=_paging_query(query, top, skip))

    async def get_all_table_scripts(self, service: str, *, timeout: Optional[float] = None) -> List[dict]:
        """
        List the scripts of every table, each tagged with its table name.

        Reads run concurrently, one per table. Tables whose scripts could not
        be read are left out of the listing.
        """
        tables = await self.list_tables(service)
        names = [t["name"] for t in tables or []]

        def reader(table: str):
            return lambda: self.get_table_scripts(service, table)

        outcome = await collect({name: reader(name) for name in names}, timeout=timeout)
        for name, error in outcome.errors.items():
            logger.warning(f"Unable to read scripts of table {name}: {error}")

        scripts: List[dict] = []
        for name in names:
            for script in outcome.get(name) or []:
                scripts.append({**script, "table": name})
        return scripts

    # Scheduler scripts

    async def list_scheduler_jobs(self, service: str) -> List[dict]:
        return await self._call("GET", service, "scheduler", "jobs")

    # Shared scripts

    async def list_shared_scripts(self, service: str) -> List[dict]:
        script = await self._call("GET", service, "apns", "scripts", "feedback")
        return [{"name": APNS_FEEDBACK, "sizeBytes": len((script or "").encode("utf-8"))}]

    # Scripts addressed by descriptor

    def _script_path(self, service: str, script: ResourceDescriptor, *, for_delete: bool = False) -> Tuple[str, ...]:
        if isinstance(script, TableScript):
            path = (service, "tables", script.name, "scripts", script.operation.value)
            return path if for_delete else path + ("code",)
        if isinstance(script, SchedulerScript):
            path = (service, "scheduler", "jobs", script.name)
            return path if for_delete else path + ("script",)
        if isinstance(script, SharedScript):
            if script.name != APNS_FEEDBACK:
                raise UnsupportedSharedScript(script.name)
            return (service, "apns", "scripts", "feedback")
        raise TypeError(f"Unknown script descriptor: {script!r}")

    async def get_script(self, service: str, script: ResourceDescriptor) -> str:
        return await self._call("GET", *self._script_path(service, script))

    async def set_script(self, service: str, script: ResourceDescriptor, source: str) -> Any:
        return await self._call("PUT", *self._script_path(service, script), headers=TEXT_CONTENT, body=source)

    async def delete_script(self, service: str, script: ResourceDescriptor) -> Any:
        return await self._call("DELETE", *self._script_path(service, script, for_delete=True))
