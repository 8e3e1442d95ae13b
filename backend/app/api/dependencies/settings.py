"""Settings dependency for API routes."""

from __future__ import annotations

from fastapi import Request

from app.config import AppSettings, get_settings


def get_app_settings(request: Request) -> AppSettings:
    """Settings the application was created with, falling back to the cached defaults."""

    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else get_settings()


__all__ = ["get_app_settings"]
