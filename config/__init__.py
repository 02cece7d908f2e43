"""Configuration loading and validation for JellyScan."""

from config.settings import JellyScanSettings, load_settings, validate_settings

__all__ = ['JellyScanSettings', 'load_settings', 'validate_settings']
