"""Configuration management for the stack deployment tool."""

from .models import (
    DeploymentRequest,
    Settings,
    override_settings,
    parse_env_pairs,
)
from .parser import SettingsLoader, ConfigValidationError

__all__ = [
    "DeploymentRequest",
    "Settings",
    "override_settings",
    "parse_env_pairs",
    "SettingsLoader",
    "ConfigValidationError",
]
