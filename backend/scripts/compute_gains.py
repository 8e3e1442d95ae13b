"""Compute realized gains/losses from a JSON transaction file or stored client history."""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from app.config import get_settings
from app.db.database import Database
from app.services.gains import compute_for_clients, load_client_records, parse_window_bound
from cost_basis.decimal_math import format_decimal
from cost_basis.export import export_gains_losses


def _load_file(path: Path) -> dict[str, list[dict]]:
    if not path.exists():
        raise SystemExit(f"Transaction file not found: {path}")
    payload = json.loads(path.read_text())
    # A bare list is one client's history; an object maps client ids to histories.
    if isinstance(payload, list):
        return {path.stem: payload}
    if isinstance(payload, dict):
        return {str(client_id): list(records) for client_id, records in payload.items()}
    raise SystemExit(f"Expected a list or an object of lists in {path}")


async def _load_clients(client_ids: list[str]) -> dict[str, list[dict]]:
    database = Database(get_settings().database_url)
    try:
        async with database.session() as session:
            return {client_id: await load_client_records(session, client_id) for client_id in client_ids}
    finally:
        await database.dispose()


async def _run(args: argparse.Namespace) -> None:
    if args.file:
        records_by_client = _load_file(Path(args.file))
    else:
        records_by_client = await _load_clients(args.client)

    computations = await compute_for_clients(
        records_by_client,
        method=args.method,
        start=parse_window_bound(args.start),
        end=parse_window_bound(args.end, end=True),
    )
    output_dir = Path(args.csv_dir) if args.csv_dir else None
    for client_id, computation in computations.items():
        result = computation.result
        print(
            f"{client_id}: {len(result.disposal_events)} disposals using {result.method.value}, "
            f"gains {format_decimal(result.total_realized_gains)}, "
            f"losses {format_decimal(result.total_realized_losses)}, "
            f"net {format_decimal(result.net_realized_pnl)}"
        )
        for rejected in computation.rejected:
            print(f"  skipped record #{rejected.index} ({rejected.record_id or '?'}): {rejected.reason}")
        if output_dir is not None:
            output_dir.mkdir(parents=True, exist_ok=True)
            target = output_dir / f"{client_id}-gains-losses.csv"
            target.write_text(export_gains_losses(result))
            print(f"  wrote {target}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Compute realized gains/losses per client")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--file", help="JSON file with a transaction list or {client: [transactions]}")
    source.add_argument("--client", action="append", help="Stored client id (repeatable)")
    parser.add_argument("--method", default=None, choices=["FIFO", "LIFO", "AVERAGE_COST"])
    parser.add_argument("--start", default=None, help="Window start (ISO date or datetime)")
    parser.add_argument("--end", default=None, help="Window end (ISO date or datetime)")
    parser.add_argument("--csv-dir", default=None, help="Write one CSV report per client here")
    args = parser.parse_args()
    asyncio.run(_run(args))


if __name__ == "__main__":
    main()
