"""Configuration module for the Fortuna projection engine."""

from fortuna.config.logging import bind_workspace, configure_logging, get_logger
from fortuna.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "configure_logging", "bind_workspace", "get_logger"]
