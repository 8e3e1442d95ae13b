"""Stateless gains/losses and snapshot endpoints over posted transactions."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from app.api.dependencies.settings import get_app_settings
from app.config import AppSettings
from app.schemas import GainsLossesResponse, GainsRequest, SnapshotRequest, SnapshotResponse
from app.services import gains as gains_service
from cost_basis.export import export_gains_losses

router = APIRouter()


async def _compute(payload: GainsRequest, settings: AppSettings) -> gains_service.GainsComputation:
    try:
        start = gains_service.parse_window_bound(payload.start_date)
        end = gains_service.parse_window_bound(payload.end_date, end=True)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    if start is not None and end is not None and start > end:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="startDate cannot be after endDate",
        )
    return await gains_service.compute_gains(
        payload.transactions,
        method=payload.method,
        start=start,
        end=end,
        policy=payload.malformed_policy,
        settings=settings,
    )


@router.post("", response_model=GainsLossesResponse)
async def post_gains(
    payload: GainsRequest,
    settings: AppSettings = Depends(get_app_settings),
) -> GainsLossesResponse:
    computation = await _compute(payload, settings)
    return GainsLossesResponse.from_domain(computation.result, computation.rejected)


@router.post("/export")
async def post_gains_export(
    payload: GainsRequest,
    settings: AppSettings = Depends(get_app_settings),
) -> Response:
    computation = await _compute(payload, settings)
    return csv_response(export_gains_losses(computation.result), "gains-losses.csv")


snapshots_router = APIRouter()


@snapshots_router.post("", response_model=SnapshotResponse)
async def post_snapshot(
    payload: SnapshotRequest,
    settings: AppSettings = Depends(get_app_settings),
) -> SnapshotResponse:
    try:
        as_of = gains_service.parse_window_bound(payload.as_of, end=True)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    if as_of is None:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="asOf is required")
    computation = await gains_service.compute_snapshot(
        payload.transactions,
        as_of,
        method=payload.method,
        policy=payload.malformed_policy,
        settings=settings,
    )
    return SnapshotResponse.from_domain(computation.snapshot, computation.rejected)


def csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


__all__ = ["csv_response", "router", "snapshots_router"]
