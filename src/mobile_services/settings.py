"""
Settings and configuration for the mobile services client.

Centralizes configuration values and provides validation with fail-fast behavior.
Loads settings from environment variables at client construction time.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, replace
from typing import Optional

__all__ = ["Settings", "create_settings_from_env", "DEFAULT_MANAGEMENT_ENDPOINT", "DEFAULT_API_VERSION"]

DEFAULT_MANAGEMENT_ENDPOINT = "https://management.core.windows.net"
DEFAULT_API_VERSION = "2012-03-01"


@dataclass(frozen=True)
class Settings:
    """
    Configuration settings for the management channel.

    Management endpoint:
        subscription_id: Subscription the mobile services belong to (required)
        management_endpoint: Base URL of the management API
        cert_path: PEM file with the management certificate (client auth)
        key_path: PEM file with the certificate's private key, if separate
        api_version: Value sent in the x-ms-version header

    Timeouts:
        http_timeout_s: Per-request HTTP timeout in seconds
        action_timeout_s: Deadline for each fan-out action or plan step
            (None disables the deadline)
    """
    subscription_id: str
    management_endpoint: str = DEFAULT_MANAGEMENT_ENDPOINT
    cert_path: Optional[str] = None
    key_path: Optional[str] = None
    api_version: str = DEFAULT_API_VERSION
    http_timeout_s: float = 30.0
    action_timeout_s: Optional[float] = None

    def __post_init__(self):
        """Validate settings on construction."""
        if not self.subscription_id:
            raise ValueError("subscription_id is required")

        # Subscription ids are GUID-like; allow anything path-safe
        if not re.match(r"^[A-Za-z0-9-]+$", self.subscription_id):
            raise ValueError(f"Invalid subscription_id format: {self.subscription_id}")

        url_pattern = r"^https?://[a-zA-Z0-9.-]+(?::[0-9]+)?(?:/.*)?$"
        if not re.match(url_pattern, self.management_endpoint):
            raise ValueError(f"Invalid management_endpoint format: {self.management_endpoint}")

        if self.key_path and not self.cert_path:
            raise ValueError("key_path specified but cert_path is missing")

        if self.http_timeout_s <= 0:
            raise ValueError(f"http_timeout_s must be positive, got {self.http_timeout_s}")

        if self.action_timeout_s is not None and self.action_timeout_s <= 0:
            raise ValueError(f"action_timeout_s must be positive, got {self.action_timeout_s}")

    def with_subscription(self, subscription_id: Optional[str]) -> Settings:
        """Return a copy bound to another subscription (None keeps this one)."""
        if not subscription_id:
            return self
        return replace(self, subscription_id=subscription_id)


def create_settings_from_env(subscription_id: Optional[str] = None) -> Settings:
    """
    Load settings from environment variables.

    Environment Variables:
        - MOBILE_SUBSCRIPTION_ID (required unless passed explicitly)
        - MOBILE_MANAGEMENT_ENDPOINT (default: https://management.core.windows.net)
        - MOBILE_MANAGEMENT_CERT (optional)
        - MOBILE_MANAGEMENT_KEY (optional, requires MOBILE_MANAGEMENT_CERT)
        - MOBILE_API_VERSION (default: 2012-03-01)
        - MOBILE_HTTP_TIMEOUT (default: 30.0)
        - MOBILE_ACTION_TIMEOUT (default: unset, no deadline)

    Args:
        subscription_id: Explicit subscription id overriding the environment

    Returns:
        Settings object with validated configuration

    Raises:
        ValueError: If configuration is invalid or required values missing
    """
    def get_float(key: str, default: Optional[float]) -> Optional[float]:
        value = os.getenv(key)
        return float(value) if value else default

    subscription = subscription_id or os.getenv("MOBILE_SUBSCRIPTION_ID")
    if not subscription:
        raise ValueError("MOBILE_SUBSCRIPTION_ID environment variable is required")

    return Settings(
        subscription_id=subscription,
        management_endpoint=os.getenv("MOBILE_MANAGEMENT_ENDPOINT", DEFAULT_MANAGEMENT_ENDPOINT),
        cert_path=os.getenv("MOBILE_MANAGEMENT_CERT"),
        key_path=os.getenv("MOBILE_MANAGEMENT_KEY"),
        api_version=os.getenv("MOBILE_API_VERSION", DEFAULT_API_VERSION),
        http_timeout_s=get_float("MOBILE_HTTP_TIMEOUT", 30.0),
        action_timeout_s=get_float("MOBILE_ACTION_TIMEOUT", None),
    )
