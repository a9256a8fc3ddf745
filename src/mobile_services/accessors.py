"""
Keyed accessors for mobile service configuration settings.

Each supported setting key maps to one field of one remote settings
object. A field is addressed either directly (a top-level field of the
settings object) or through a provider record: the auth settings are an
ordered list of per-identity-provider records, and the field lives in the
record whose ``provider`` matches.

Writes are read-modify-write: the full settings object is read, one field
is changed in place and the whole object is written back, so fields other
than the one being changed are never clobbered.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from .api import MobileServiceApi, SettingsResource
from .errors import InvalidSettingValue, UnknownSettingKey

logger = logging.getLogger(__name__)

__all__ = [
    "SettingKey",
    "FieldSelector",
    "ProviderSelector",
    "AccessorEntry",
    "ACCESSORS",
    "parse_setting_key",
    "coerce_setting_value",
    "get_setting",
    "set_setting",
]


class SettingKey(str, Enum):
    """Closed set of configuration keys the CLI can get and set."""
    DYNAMIC_SCHEMA_ENABLED = "dynamicSchemaEnabled"
    MICROSOFT_ACCOUNT_CLIENT_SECRET = "microsoftAccountClientSecret"
    MICROSOFT_ACCOUNT_CLIENT_ID = "microsoftAccountClientId"
    MICROSOFT_ACCOUNT_PACKAGE_SID = "microsoftAccountPackageSID"
    FACEBOOK_CLIENT_ID = "facebookClientId"
    FACEBOOK_CLIENT_SECRET = "facebookClientSecret"
    TWITTER_CLIENT_ID = "twitterClientId"
    TWITTER_CLIENT_SECRET = "twitterClientSecret"
    GOOGLE_CLIENT_ID = "googleClientId"
    GOOGLE_CLIENT_SECRET = "googleClientSecret"
    LOG_LEVEL = "logLevel"
    APNS_MODE = "apnsMode"
    APNS_PASSWORD = "apnsPassword"
    APNS_CERTIFICATE = "apnsCertificate"


@dataclass(frozen=True)
class FieldSelector:
    """Top-level field of the settings object."""
    field: str

    def pick(self, settings: Any) -> Any:
        if isinstance(settings, dict):
            return settings.get(self.field)
        return None

    def assign(self, settings: Any, value: Any) -> None:
        settings[self.field] = value


@dataclass(frozen=True)
class ProviderSelector:
    """Field of the first record in a list whose ``provider`` equals ``provider``."""
    provider: str
    field: str
    discriminant: str = "provider"

    def _record(self, settings: Any) -> Optional[dict]:
        if not isinstance(settings, list):
            return None
        for record in settings:
            if isinstance(record, dict) and record.get(self.discriminant) == self.provider:
                return record
        return None

    def pick(self, settings: Any) -> Any:
        record = self._record(settings)
        return None if record is None else record.get(self.field)

    def assign(self, settings: Any, value: Any) -> None:
        # No matching record: leave the collection unchanged
        record = self._record(settings)
        if record is not None:
            record[self.field] = value


Selector = Union[FieldSelector, ProviderSelector]


@dataclass(frozen=True)
class AccessorEntry:
    resource: SettingsResource
    selector: Selector


ACCESSORS: Dict[SettingKey, AccessorEntry] = {
    SettingKey.DYNAMIC_SCHEMA_ENABLED: AccessorEntry(SettingsResource.SERVICE, FieldSelector("dynamicSchemaEnabled")),
    SettingKey.MICROSOFT_ACCOUNT_CLIENT_SECRET: AccessorEntry(SettingsResource.LIVE, FieldSelector("clientSecret")),
    SettingKey.MICROSOFT_ACCOUNT_CLIENT_ID: AccessorEntry(SettingsResource.LIVE, FieldSelector("clientID")),
    SettingKey.MICROSOFT_ACCOUNT_PACKAGE_SID: AccessorEntry(SettingsResource.LIVE, FieldSelector("packageSID")),
    SettingKey.FACEBOOK_CLIENT_ID: AccessorEntry(SettingsResource.AUTH, ProviderSelector("facebook", "appId")),
    SettingKey.FACEBOOK_CLIENT_SECRET: AccessorEntry(SettingsResource.AUTH, ProviderSelector("facebook", "secret")),
    SettingKey.TWITTER_CLIENT_ID: AccessorEntry(SettingsResource.AUTH, ProviderSelector("twitter", "appId")),
    SettingKey.TWITTER_CLIENT_SECRET: AccessorEntry(SettingsResource.AUTH, ProviderSelector("twitter", "secret")),
    SettingKey.GOOGLE_CLIENT_ID: AccessorEntry(SettingsResource.AUTH, ProviderSelector("google", "appId")),
    SettingKey.GOOGLE_CLIENT_SECRET: AccessorEntry(SettingsResource.AUTH, ProviderSelector("google", "secret")),
    SettingKey.LOG_LEVEL: AccessorEntry(SettingsResource.LOG, FieldSelector("logLevel")),
    SettingKey.APNS_MODE: AccessorEntry(SettingsResource.APNS, FieldSelector("mode")),
    SettingKey.APNS_PASSWORD: AccessorEntry(SettingsResource.APNS, FieldSelector("password")),
    SettingKey.APNS_CERTIFICATE: AccessorEntry(SettingsResource.APNS, FieldSelector("certificate")),
}


def parse_setting_key(key: Union[str, SettingKey]) -> SettingKey:
    """
    Map user input to a setting key.

    Raises:
        UnknownSettingKey: If ``key`` is not one of the supported keys
    """
    try:
        return SettingKey(key)
    except ValueError:
        raise UnknownSettingKey(str(key), supported=[k.value for k in SettingKey]) from None


def _entry(key: Union[str, SettingKey]) -> AccessorEntry:
    return ACCESSORS[parse_setting_key(key)]


def coerce_setting_value(key: Union[str, SettingKey], raw: str) -> Any:
    """
    Convert CLI text into the value stored under ``key``.

    ``dynamicSchemaEnabled`` is a boolean and only accepts ``true`` or
    ``false``; every other key stores the text as given.
    """
    setting = parse_setting_key(key)
    if setting is SettingKey.DYNAMIC_SCHEMA_ENABLED:
        if raw == "true":
            return True
        if raw == "false":
            return False
        raise InvalidSettingValue("The value must be either true or false")
    return raw


async def get_setting(api: MobileServiceApi, service: str, key: Union[str, SettingKey]) -> Any:
    """
    Read one setting.

    Returns:
        The setting value, or None if it is not configured

    Raises:
        UnknownSettingKey: If ``key`` is not supported
        RemoteOperationFailed: If the settings object could not be read
    """
    entry = _entry(key)
    settings = await api.read_settings(service, entry.resource)
    return entry.selector.pick(settings)


async def set_setting(api: MobileServiceApi, service: str, key: Union[str, SettingKey], value: Any) -> Any:
    """
    Change one setting by read-modify-write of its settings object.

    If the read fails the error propagates and nothing is written.

    Raises:
        UnknownSettingKey: If ``key`` is not supported
        RemoteOperationFailed: If the read or the write fails
    """
    entry = _entry(key)
    settings = await api.read_settings(service, entry.resource)
    if settings is None:
        settings = {} if isinstance(entry.selector, FieldSelector) else []
    entry.selector.assign(settings, value)
    logger.debug(f"writing {entry.resource.value} settings for {service} ({parse_setting_key(key).value})")
    return await api.write_settings(service, entry.resource, json.dumps(settings))
