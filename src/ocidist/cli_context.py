"""
CLI Context for managing application dependencies.

Builds the Settings for one CLI command from the environment plus the
command's flags, and configures logging once for that command. Avoids
global state and keeps the Operations facade injectable.
"""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Optional

from .operations import Operations, OpsConfig
from .settings import Settings, create_settings_from_env

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class CLIContext:
    """
    Shared context for CLI commands.
    
    Holds the settings a command runs with; flags override the environment.
    """
    settings: Settings
    config: OpsConfig = dataclasses.field(default_factory=OpsConfig)
    
    @classmethod
    def from_env(cls, *, tls_verify: Optional[bool] = None, debug: Optional[bool] = None,
                 config: Optional[OpsConfig] = None) -> CLIContext:
        """
        Create CLI context from environment variables and flag overrides.
        
        Args:
            tls_verify: ``--tls-verify/--no-tls-verify`` flag value
            debug: ``--debug`` flag value; only ever turns debug on
            config: Operations policy
            
        Returns:
            CLIContext with logging configured
        """
        settings = create_settings_from_env()
        overrides = {}
        if tls_verify is not None:
            overrides["tls_verify"] = tls_verify
        if debug:
            overrides["debug"] = True
        if overrides:
            settings = dataclasses.replace(settings, **overrides)
        
        context = cls(settings=settings, config=config or OpsConfig())
        context.configure_logging()
        return context
    
    def configure_logging(self) -> None:
        level = logging.DEBUG if self.settings.debug else logging.WARNING
        logging.basicConfig(level=level, format=LOG_FORMAT, force=True)
    
    @property
    def operations(self) -> Operations:
        return Operations(config=self.config, settings=self.settings)
