"""
Script name routing.

Script names follow a path-like convention that selects the kind of script
and carries its identifying fields:

- ``table/<table>.<operation>`` for table operation scripts
- ``scheduler/<job>`` for scheduler job scripts
- ``shared/apnsFeedback`` for the single shared script

A trailing ``.js`` extension is accepted on all three forms. Routing never
performs I/O and never raises for malformed names; :func:`require_route`
turns a miss into a user error for callers that need one.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .errors import ScriptNameNotRecognized

__all__ = [
    "ScriptKind",
    "TableOperation",
    "TableScript",
    "SchedulerScript",
    "SharedScript",
    "ResourceDescriptor",
    "APNS_FEEDBACK",
    "route",
    "require_route",
    "format_script_name",
    "default_script_path",
]

APNS_FEEDBACK = "apnsFeedback"

_TABLE_RE = re.compile(r"^table/([^.]+)\.(insert|read|update|delete)(?:\.js)?$")
_SCHEDULER_RE = re.compile(r"^scheduler/([^.]+)(?:\.js)?$")
_SHARED_RE = re.compile(rf"^shared/{APNS_FEEDBACK}(?:\.js)?$")


class ScriptKind(str, Enum):
    """Kinds of scripts a mobile service hosts."""
    TABLE = "table"
    SCHEDULER = "scheduler"
    SHARED = "shared"


class TableOperation(str, Enum):
    """Table operations that can carry a script."""
    INSERT = "insert"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class TableScript:
    name: str
    operation: TableOperation
    kind = ScriptKind.TABLE


@dataclass(frozen=True)
class SchedulerScript:
    name: str
    kind = ScriptKind.SCHEDULER


@dataclass(frozen=True)
class SharedScript:
    name: str = APNS_FEEDBACK
    kind = ScriptKind.SHARED


ResourceDescriptor = Union[TableScript, SchedulerScript, SharedScript]


def route(name: str) -> Optional[ResourceDescriptor]:
    """
    Parse a script name into a typed descriptor.

    Forms are tried in order (table, scheduler, shared) and the first match
    wins.

    Args:
        name: Script name such as ``table/orders.read``

    Returns:
        The matching descriptor, or None if the name is not recognized
    """
    if not isinstance(name, str):
        return None

    match = _TABLE_RE.fullmatch(name)
    if match:
        return TableScript(name=match.group(1), operation=TableOperation(match.group(2)))

    match = _SCHEDULER_RE.fullmatch(name)
    if match:
        return SchedulerScript(name=match.group(1))

    if _SHARED_RE.fullmatch(name):
        return SharedScript(name=APNS_FEEDBACK)

    return None


def require_route(name: str) -> ResourceDescriptor:
    """Route a script name, raising ScriptNameNotRecognized on a miss."""
    descriptor = route(name)
    if descriptor is None:
        raise ScriptNameNotRecognized(name)
    return descriptor


def format_script_name(descriptor: ResourceDescriptor) -> str:
    """Render a descriptor back into its canonical script name."""
    if isinstance(descriptor, TableScript):
        return f"table/{descriptor.name}.{descriptor.operation.value}"
    return f"{descriptor.kind.value}/{descriptor.name}"


def default_script_path(descriptor: ResourceDescriptor, base_dir: str = ".") -> str:
    """
    Local file a script is saved to or read from when no file is given.

    Scripts live in a directory named after their kind, e.g.
    ``./table/orders.read.js`` or ``./scheduler/cleanup.js``.
    """
    if isinstance(descriptor, TableScript):
        filename = f"{descriptor.name}.{descriptor.operation.value}.js"
    else:
        filename = f"{descriptor.name}.js"
    return os.path.join(base_dir, descriptor.kind.value, filename)
