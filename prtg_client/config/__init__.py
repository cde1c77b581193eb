"""Configuration package for client settings and startup validation."""

from .settings import AuthMode, ClientSettings, SettingsLoadError, config_load_settings

__all__ = ["AuthMode", "ClientSettings", "SettingsLoadError", "config_load_settings"]
