"""
Exception types for the mobile services client.

User errors (bad script names, unknown setting keys, invalid values) are
separated from remote failures so the CLI can map each family to its own
exit code.
"""
from __future__ import annotations

from typing import Iterable, List, Optional

__all__ = [
    "MobileServiceError",
    "ScriptNameNotRecognized",
    "UnknownSettingKey",
    "InvalidSettingValue",
    "UnsupportedSharedScript",
    "RemoteOperationFailed",
    "ResourceNotFound",
    "PlanIncomplete",
]


class MobileServiceError(Exception):
    """Base class for all mobile services errors."""


class ScriptNameNotRecognized(MobileServiceError, ValueError):
    """Script name does not match any known naming convention."""

    HINTS = (
        "For table script, specify table/<tableName>.{insert|read|update|delete}",
        "For APNS script, specify shared/apnsFeedback",
        "For scheduler script, specify scheduler/<scriptName>",
    )

    def __init__(self, name: str):
        super().__init__(f"Invalid script name {name}")
        self.name = name


class UnknownSettingKey(MobileServiceError, KeyError):
    """Requested setting key is outside the fixed accessor table."""

    def __init__(self, key: str, supported: Iterable[str] = ()):
        super().__init__(key)
        self.key = key
        self.supported: List[str] = list(supported)

    def __str__(self) -> str:
        return f"Unsupported key {self.key}"


class InvalidSettingValue(MobileServiceError, ValueError):
    """Value cannot be stored under the given setting key."""


class UnsupportedSharedScript(MobileServiceError, ValueError):
    """Shared script name other than the feedback channel script."""

    def __init__(self, name: str):
        super().__init__(f"Unsupported shared script name: {name}")
        self.name = name


class RemoteOperationFailed(MobileServiceError):
    """The management endpoint reported an error or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ResourceNotFound(RemoteOperationFailed):
    """The management endpoint answered 404."""


class PlanIncomplete(MobileServiceError):
    """One or more steps of a sequential plan failed."""

    def __init__(self, failures: int, total: int):
        super().__init__("Not all update operations completed successfully.")
        self.failures = failures
        self.total = total
