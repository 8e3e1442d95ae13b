"""Configuration package for the cost-basis service."""

from .settings import AppSettings, get_settings

__all__ = ["AppSettings", "get_settings"]
