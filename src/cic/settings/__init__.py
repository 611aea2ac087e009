"""Layered configuration (TOML files + ``CIC_*`` environment variables)."""

from cic.settings.config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
