"""Per-client transaction storage and reports computed from stored history."""

from __future__ import annotations

import logging
from typing import Literal, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies.settings import get_app_settings
from app.config import AppSettings
from app.db.database import Database
from app.models.transaction import ClientTransaction
from app.schemas import (
    GainsLossesResponse,
    LotSchema,
    RejectedRecordSchema,
    SnapshotResponse,
    StoredTransactionSchema,
    TransactionImportRequest,
    TransactionImportResponse,
)
from app.schemas.gains import CostBasisMethodName
from app.services import gains as gains_service
from cost_basis.export import export_gains_losses

from .gains import csv_response

logger = logging.getLogger(__name__)


def get_clients_router(database: Database) -> APIRouter:
    router = APIRouter(prefix="/clients", tags=["clients"])

    @router.post(
        "/{client_id}/transactions",
        response_model=TransactionImportResponse,
        status_code=status.HTTP_201_CREATED,
    )
    async def import_transactions(
        client_id: str,
        payload: TransactionImportRequest,
        session: AsyncSession = Depends(database.get_session),
        settings: AppSettings = Depends(get_app_settings),
    ) -> TransactionImportResponse:
        normalized = gains_service.normalize_records(payload.transactions, settings, payload.malformed_policy)
        incoming = [event.id for event in normalized.events]
        if incoming:
            existing = await session.execute(
                select(ClientTransaction.external_id).where(
                    ClientTransaction.client_id == client_id,
                    ClientTransaction.external_id.in_(incoming),
                )
            )
            duplicates = sorted(existing.scalars())
            if duplicates:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"Transactions already imported: {', '.join(duplicates)}",
                )

        for event in normalized.events:
            session.add(
                ClientTransaction(
                    client_id=client_id,
                    external_id=event.id,
                    timestamp=event.timestamp,
                    kind=event.kind.value,
                    asset=event.asset,
                    quantity=event.quantity,
                    unit_price=event.unit_price,
                    fee=event.fee,
                    source=event.source,
                )
            )
        try:
            await session.commit()
        except IntegrityError as exc:
            await session.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Transactions already imported",
            ) from exc

        logger.info(
            "Imported %d transactions for client %s (%d rejected)",
            len(normalized.events),
            client_id,
            len(normalized.rejected),
        )
        return TransactionImportResponse(
            client_id=client_id,
            imported=len(normalized.events),
            rejected=[RejectedRecordSchema.from_domain(item) for item in normalized.rejected],
        )

    @router.get("/{client_id}/transactions", response_model=list[StoredTransactionSchema])
    async def list_transactions(
        client_id: str,
        session: AsyncSession = Depends(database.get_session),
    ) -> list[StoredTransactionSchema]:
        rows = await session.execute(
            select(ClientTransaction)
            .where(ClientTransaction.client_id == client_id)
            .order_by(ClientTransaction.timestamp, ClientTransaction.external_id)
        )
        return [StoredTransactionSchema.from_row(row) for row in rows.scalars()]

    @router.get("/{client_id}/gains", response_model=GainsLossesResponse)
    async def get_gains(
        client_id: str,
        method: Optional[CostBasisMethodName] = Query(default=None),
        start_date: Optional[str] = Query(default=None, alias="startDate"),
        end_date: Optional[str] = Query(default=None, alias="endDate"),
        output_format: Literal["json", "csv"] = Query(default="json", alias="format"),
        session: AsyncSession = Depends(database.get_session),
        settings: AppSettings = Depends(get_app_settings),
    ) -> Union[GainsLossesResponse, Response]:
        records = await _require_records(session, client_id)
        try:
            start = gains_service.parse_window_bound(start_date)
            end = gains_service.parse_window_bound(end_date, end=True)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
        if start is not None and end is not None and start > end:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="startDate cannot be after endDate",
            )

        computation = await gains_service.compute_gains(
            records,
            method=method,
            start=start,
            end=end,
            settings=settings,
        )
        if output_format == "csv":
            return csv_response(export_gains_losses(computation.result), f"{client_id}-gains-losses.csv")
        return GainsLossesResponse.from_domain(computation.result, computation.rejected)

    @router.get("/{client_id}/snapshot", response_model=SnapshotResponse)
    async def get_snapshot(
        client_id: str,
        as_of: str = Query(..., alias="asOf"),
        method: Optional[CostBasisMethodName] = Query(default=None),
        session: AsyncSession = Depends(database.get_session),
        settings: AppSettings = Depends(get_app_settings),
    ) -> SnapshotResponse:
        records = await _require_records(session, client_id)
        try:
            as_of_bound = gains_service.parse_window_bound(as_of, end=True)
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
        if as_of_bound is None:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="asOf is required")
        computation = await gains_service.compute_snapshot(
            records,
            as_of_bound,
            method=method,
            settings=settings,
        )
        return SnapshotResponse.from_domain(computation.snapshot, computation.rejected)

    @router.get("/{client_id}/assets/{asset}/lots", response_model=list[LotSchema])
    async def get_lots(
        client_id: str,
        asset: str,
        method: Optional[CostBasisMethodName] = Query(default=None),
        session: AsyncSession = Depends(database.get_session),
        settings: AppSettings = Depends(get_app_settings),
    ) -> list[LotSchema]:
        records = await _require_records(session, client_id)
        lots = await gains_service.compute_lots(records, asset, method=method, settings=settings)
        return [LotSchema.from_domain(lot) for lot in lots]

    return router


async def _require_records(session: AsyncSession, client_id: str) -> list[dict]:
    records = await gains_service.load_client_records(session, client_id)
    if not records:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No transactions for client {client_id}")
    return records


__all__ = ["get_clients_router"]
