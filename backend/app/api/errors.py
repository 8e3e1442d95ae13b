"""Translate engine errors into HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from cost_basis.decimal_math import format_decimal
from cost_basis.errors import DivisionByZeroError, InsufficientLots, MalformedTransaction

logger = logging.getLogger(__name__)


async def insufficient_lots_handler(request: Request, exc: InsufficientLots) -> JSONResponse:
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": str(exc),
            "error": "InsufficientLots",
            "asset": exc.asset,
            "date": exc.date.isoformat(),
            "requested": format_decimal(exc.requested),
            "available": format_decimal(exc.available),
            "transactionId": exc.transaction_id,
        },
    )


async def malformed_transaction_handler(request: Request, exc: MalformedTransaction) -> JSONResponse:
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": str(exc),
            "error": "MalformedTransaction",
            "reason": exc.reason,
            "index": exc.index,
            "recordId": exc.record_id,
        },
    )


async def division_by_zero_handler(request: Request, exc: DivisionByZeroError) -> JSONResponse:
    logger.error("Division by zero while handling %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc), "error": "DivisionByZero"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InsufficientLots, insufficient_lots_handler)
    app.add_exception_handler(MalformedTransaction, malformed_transaction_handler)
    app.add_exception_handler(DivisionByZeroError, division_by_zero_handler)


__all__ = ["register_exception_handlers"]
