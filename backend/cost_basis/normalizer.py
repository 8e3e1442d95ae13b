"""Turn heterogeneous raw transaction records into ordered transaction events.

The classification table decides, per transaction kind, whether an event adds
to holdings, removes from them, or is ignored by the ledger. Every table must
cover every ``TransactionKind``; a missing kind is an error at build time, not a
silent default at replay time.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Sequence

from .decimal_math import is_negative, is_positive, to_decimal
from .errors import MalformedTransaction
from .models import (
    Classification,
    MalformedPolicy,
    NormalizationResult,
    RejectedRecord,
    TransactionEvent,
    TransactionKind,
)

logger = logging.getLogger(__name__)

# Epoch values above this magnitude are milliseconds rather than seconds.
EPOCH_MILLISECONDS_THRESHOLD = 10**11

ClassificationTable = Mapping[TransactionKind, Classification]

_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("id", "transaction_id", "transactionId"),
    "timestamp": ("timestamp", "date", "datetime"),
    "kind": ("kind", "type"),
    "asset": ("asset", "symbol"),
    "quantity": ("quantity", "amount"),
    "unit_price": ("unitPrice", "unit_price", "price"),
    "fee": ("fee",),
    "source": ("source", "exchange"),
}


def _check_exhaustive(table: Mapping[TransactionKind, Classification]) -> None:
    missing = [kind.value for kind in TransactionKind if kind not in table]
    if missing:
        raise ValueError(f"Classification table is missing kinds: {', '.join(missing)}")


DEFAULT_CLASSIFICATION: ClassificationTable = MappingProxyType(
    {
        TransactionKind.BUY: Classification.ACQUISITION,
        TransactionKind.DEPOSIT: Classification.ACQUISITION,
        TransactionKind.REWARD: Classification.ACQUISITION,
        TransactionKind.SELL: Classification.DISPOSAL,
        TransactionKind.WITHDRAWAL: Classification.DISPOSAL,
        # Non-trade kinds: configurable, see build_classification().
        TransactionKind.UNSTAKE: Classification.ACQUISITION,
        TransactionKind.TRANSFER: Classification.ACQUISITION,
        TransactionKind.SWAP: Classification.DISPOSAL,
        TransactionKind.STAKE: Classification.DISPOSAL,
        TransactionKind.FEE: Classification.DISPOSAL,
        TransactionKind.OTHER: Classification.IGNORED,
    }
)
_check_exhaustive(DEFAULT_CLASSIFICATION)


def build_classification(
    overrides: Mapping[TransactionKind | str, Classification | str] | None = None,
) -> ClassificationTable:
    """Return a complete classification table with ``overrides`` applied."""

    table = dict(DEFAULT_CLASSIFICATION)
    for raw_kind, raw_class in (overrides or {}).items():
        try:
            kind = TransactionKind(raw_kind)
            classification = Classification(raw_class)
        except ValueError as exc:
            raise ValueError(f"Invalid classification override {raw_kind!r} -> {raw_class!r}") from exc
        table[kind] = classification
    _check_exhaustive(table)
    return MappingProxyType(table)


def classify(kind: TransactionKind, table: ClassificationTable | None = None) -> Classification:
    return (table or DEFAULT_CLASSIFICATION)[kind]


def _field(record: Any, name: str) -> Any:
    for alias in _FIELD_ALIASES[name]:
        if isinstance(record, Mapping):
            if alias in record:
                return record[alias]
        elif hasattr(record, alias):
            return getattr(record, alias)
    return None


def parse_timestamp(value: Any) -> datetime:
    """Parse ISO-8601 text, epoch numbers, dates or datetimes into aware UTC datetimes."""

    if value is None or value == "":
        raise ValueError("timestamp is missing")
    if isinstance(value, bool):
        raise ValueError("timestamp must not be a boolean")
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, (int, float, Decimal)):
        parsed = _from_epoch(Decimal(str(value)))
    elif isinstance(value, str):
        text = value.strip()
        try:
            parsed = _from_epoch(Decimal(text)) if _looks_numeric(text) else _from_iso(text)
        except ValueError as exc:
            raise ValueError(f"unparseable timestamp {value!r}") from exc
    else:
        raise ValueError(f"unsupported timestamp type: {type(value).__name__}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError as exc:
        raise ValueError(f"timestamp out of range: {value!r}") from exc


def _looks_numeric(text: str) -> bool:
    stripped = text.lstrip("+-")
    return bool(stripped) and stripped.replace(".", "", 1).isdigit()


def _from_iso(text: str) -> datetime:
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _from_epoch(value: Decimal) -> datetime:
    if not value.is_finite():
        raise ValueError("epoch timestamp must be finite")
    if abs(value) > EPOCH_MILLISECONDS_THRESHOLD:
        value = value / 1000
    try:
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    except (OverflowError, OSError) as exc:
        raise ValueError(f"epoch timestamp out of range: {value}") from exc


def _optional_decimal(value: Any, name: str, record_id: str | None) -> Decimal | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        parsed = to_decimal(value)
    except ValueError as exc:
        raise MalformedTransaction(f"{name} is not a decimal: {value!r}", record_id=record_id) from exc
    if is_negative(parsed):
        raise MalformedTransaction(f"{name} must not be negative, got {parsed}", record_id=record_id)
    return parsed


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_transaction(
    record: Mapping[str, Any] | Any,
    classification: ClassificationTable | None = None,
) -> TransactionEvent:
    """Validate one raw record and return its ``TransactionEvent``.

    Raises:
        MalformedTransaction: when the id, timestamp, asset, kind or quantity is
            missing or invalid, or when price/fee is negative or unparseable.
    """

    raw_id = _field(record, "id")
    record_id = _optional_text(raw_id)
    if record_id is None:
        raise MalformedTransaction("transaction id is missing")

    try:
        timestamp = parse_timestamp(_field(record, "timestamp"))
    except ValueError as exc:
        raise MalformedTransaction(str(exc), record_id=record_id) from exc

    asset = _optional_text(_field(record, "asset"))
    if asset is None:
        raise MalformedTransaction("asset symbol is empty", record_id=record_id)
    asset = asset.upper()

    raw_kind = _field(record, "kind")
    if isinstance(raw_kind, TransactionKind):
        kind = raw_kind
    else:
        try:
            kind = TransactionKind(str(raw_kind).strip().upper())
        except ValueError:
            raise MalformedTransaction(f"unknown transaction kind {raw_kind!r}", record_id=record_id) from None

    raw_quantity = _field(record, "quantity")
    if raw_quantity is None:
        raise MalformedTransaction("quantity is missing", record_id=record_id)
    try:
        quantity = to_decimal(raw_quantity)
    except ValueError as exc:
        raise MalformedTransaction(f"quantity is not a decimal: {raw_quantity!r}", record_id=record_id) from exc
    if not is_positive(quantity):
        raise MalformedTransaction(f"quantity must be positive, got {quantity}", record_id=record_id)

    unit_price = _optional_decimal(_field(record, "unit_price"), "unit price", record_id)
    fee = _optional_decimal(_field(record, "fee"), "fee", record_id)

    return TransactionEvent(
        id=record_id,
        timestamp=timestamp,
        asset=asset,
        kind=kind,
        quantity=quantity,
        classification=classify(kind, classification),
        unit_price=unit_price,
        fee=fee,
        source=_optional_text(_field(record, "source")),
    )


def order_events(events: Iterable[TransactionEvent]) -> list[TransactionEvent]:
    """Sort events ascending by ``(timestamp, id)``."""

    return sorted(events, key=lambda event: event.sort_key)


def normalize_batch(
    records: Sequence[Mapping[str, Any] | Any],
    policy: MalformedPolicy = MalformedPolicy.SKIP,
    classification: ClassificationTable | None = None,
) -> NormalizationResult:
    """Normalize ``records`` and return the ordered events plus any rejections.

    With ``MalformedPolicy.SKIP`` bad records are logged and reported; with
    ``MalformedPolicy.REJECT`` the first bad record raises.
    """

    policy = MalformedPolicy(policy)
    events: list[TransactionEvent] = []
    rejected: list[RejectedRecord] = []
    seen_ids: set[str] = set()
    for index, record in enumerate(records):
        try:
            event = normalize_transaction(record, classification)
            if event.id in seen_ids:
                raise MalformedTransaction("duplicate transaction id in batch", record_id=event.id)
        except MalformedTransaction as exc:
            annotated = exc.at_index(index)
            if policy is MalformedPolicy.REJECT:
                raise annotated from exc
            logger.warning("Skipping malformed transaction: %s", annotated)
            rejected.append(RejectedRecord(index=index, record_id=exc.record_id, reason=exc.reason))
            continue
        seen_ids.add(event.id)
        events.append(event)
    logger.debug("Normalized %d of %d transaction records", len(events), len(records))
    return NormalizationResult(events=tuple(order_events(events)), rejected=tuple(rejected))


__all__ = [
    "DEFAULT_CLASSIFICATION",
    "ClassificationTable",
    "build_classification",
    "classify",
    "normalize_batch",
    "normalize_transaction",
    "order_events",
    "parse_timestamp",
]
