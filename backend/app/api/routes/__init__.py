"""Route registration helpers."""

from __future__ import annotations

from fastapi import APIRouter

from .clients import get_clients_router
from .gains import router as gains_router
from .gains import snapshots_router

api_router = APIRouter()
api_router.include_router(gains_router, prefix="/gains", tags=["gains"])
api_router.include_router(snapshots_router, prefix="/snapshots", tags=["snapshots"])

__all__ = ["api_router", "get_clients_router"]
