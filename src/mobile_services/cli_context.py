"""
CLI Context for managing application dependencies.

Provides a clean way to manage CLI-level dependencies like settings and the
management channel, avoiding global state and enabling proper dependency
injection.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from .api import MobileServiceApi
from .channel import ManagementChannel
from .operations import Operations, OpsConfig
from .runtime_types import ResourceOperation
from .settings import Settings, create_settings_from_env


@dataclass
class CLIContext:
    """
    Shared context for CLI commands.

    Manages application-level dependencies (settings, output config and the
    channel) that are initialized once per CLI command execution.

    A pre-built ``channel`` is used as-is and never closed; otherwise a
    ManagementChannel is opened for the duration of the command.
    """
    settings: Settings
    config: OpsConfig
    channel: Optional[ResourceOperation] = None

    @classmethod
    def from_env(cls, subscription: Optional[str] = None, config: Optional[OpsConfig] = None) -> CLIContext:
        """
        Create CLI context from environment variables.

        Args:
            subscription: Subscription id overriding MOBILE_SUBSCRIPTION_ID
            config: Output and policy configuration

        Returns:
            CLIContext with settings loaded from environment
        """
        settings = create_settings_from_env(subscription)
        config = config or OpsConfig()
        if config.action_timeout_s is None and settings.action_timeout_s is not None:
            config = OpsConfig(json_output=config.json_output, verbose=config.verbose,
                               action_timeout_s=settings.action_timeout_s)
        return cls(settings=settings, config=config)

    @asynccontextmanager
    async def operations(self) -> AsyncIterator[Operations]:
        """Open the channel and yield an Operations facade bound to it."""
        if self.channel is not None:
            yield Operations(self.config, MobileServiceApi(self.channel))
            return

        async with ManagementChannel(self.settings) as channel:
            yield Operations(self.config, MobileServiceApi(channel))
