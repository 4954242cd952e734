"""
Fetcher de snapshots: (recordId, lastModified) de todas las páginas de una tabla.

Pide solo el campo de última modificación (fields[]), así el payload es
mínimo. Sin efectos secundarios; los errores de transporte se propagan.
"""

from __future__ import annotations

from typing import Callable, Dict

from loguru import logger

from portfolio_sync.domain.entities.records import Snapshot, TableDefinition, extract_last_modified
from portfolio_sync.shared.utils.datetime_utils import isoformat_z, utc_now

from .airtable_client import AirtableClient


class SnapshotFetcher:
    def __init__(
        self,
        client: AirtableClient,
        *,
        last_modified_field: str = "Last Modified",
        page_size: int = 100,
        clock: Callable[[], str] = lambda: isoformat_z(utc_now()),
    ) -> None:
        self._client = client
        self._last_modified_field = last_modified_field
        self._page_size = page_size
        self._clock = clock
        self.calls = 0

    def fetch_snapshot(self, table: TableDefinition) -> Snapshot:
        before = self._client.request_count
        entries: Dict[str, str] = {}
        try:
            for raw in self._client.iter_records(
                table_name=table.name,
                fields=[self._last_modified_field],
                page_size=self._page_size,
            ):
                record_id = raw.get("id") if isinstance(raw, dict) else None
                if not record_id:
                    logger.warning(f"[{table.name}] registro sin 'id' en el snapshot; se ignora")
                    continue
                entries[str(record_id)] = extract_last_modified(raw, self._last_modified_field)
        finally:
            self.calls += self._client.request_count - before

        logger.debug(f"[{table.name}] snapshot con {len(entries)} registros")
        return Snapshot(table=table.name, entries=entries, captured_at=self._clock())
