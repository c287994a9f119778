"""Configuration module for the Kira advisor."""

from kira_advisor.config.logging import configure_logging, get_logger
from kira_advisor.config.settings import FlatSettings, get_settings

__all__ = ["FlatSettings", "get_settings", "configure_logging", "get_logger"]
