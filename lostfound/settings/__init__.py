"""Application settings."""

from lostfound.settings.app import AppSettings, get_settings


__all__ = ["AppSettings", "get_settings"]
