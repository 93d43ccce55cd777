"""Configuration for the DocVault content store."""

from docvault.config.loader import load_settings
from docvault.config.settings import ContentSettings, OperationTimeouts

__all__ = ["ContentSettings", "OperationTimeouts", "load_settings"]
