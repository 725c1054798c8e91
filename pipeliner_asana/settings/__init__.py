"""
Settings module that centralises the service configuration.
Each settings class is built once, on first use, and handed to the
components that need it.
"""

from .app import AppSettings
from .asana import AsanaSettings
from .base import BaseSettings
from .sentry import SentrySettings

# Load .env before any settings object reads the environment
BaseSettings.ensure_dotenv_loaded()

_app_settings = None
_asana_settings = None
_sentry_settings = None


def get_app_settings() -> AppSettings:
    global _app_settings
    if _app_settings is None:
        _app_settings = AppSettings()
    return _app_settings


def get_asana_settings() -> AsanaSettings:
    global _asana_settings
    if _asana_settings is None:
        _asana_settings = AsanaSettings()
    return _asana_settings


def get_sentry_settings() -> SentrySettings:
    global _sentry_settings
    if _sentry_settings is None:
        _sentry_settings = SentrySettings()
    return _sentry_settings


__all__ = [
    "AppSettings",
    "AsanaSettings",
    "SentrySettings",
    "get_app_settings",
    "get_asana_settings",
    "get_sentry_settings",
]
