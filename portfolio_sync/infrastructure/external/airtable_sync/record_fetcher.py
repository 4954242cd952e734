"""
Fetcher selectivo: registros completos solo para ids nuevos/cambiados.

Los ids se agrupan en lotes (filterByFormula con OR(RECORD_ID()=...)) para
no exceder el largo de query del upstream. Con cero ids no hay red.
"""

from __future__ import annotations

from typing import Collection, Iterable, List

from loguru import logger

from portfolio_sync.domain.entities.records import SourceRecord, TableDefinition
from portfolio_sync.shared.exceptions.sync import RecordSerializationError

from .airtable_client import AirtableClient, build_record_id_formula


class SelectiveRecordFetcher:
    def __init__(
        self,
        client: AirtableClient,
        *,
        last_modified_field: str = "Last Modified",
        batch_size: int = 50,
        page_size: int = 100,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size debe ser >= 1")
        self._client = client
        self._last_modified_field = last_modified_field
        self._batch_size = batch_size
        self._page_size = page_size
        self.calls = 0
        self.skipped = 0

    def fetch_records(self, table: TableDefinition, record_ids: Collection[str]) -> List[SourceRecord]:
        wanted = sorted(set(record_ids))
        if not wanted:
            return []

        records: List[SourceRecord] = []
        for start in range(0, len(wanted), self._batch_size):
            batch = wanted[start:start + self._batch_size]
            raw_records = self._iter(
                table,
                filter_formula=build_record_id_formula(batch),
            )
            batch_ids = set(batch)
            records.extend(r for r in self._parse(table, raw_records) if r.id in batch_ids)

        logger.debug(f"[{table.name}] fetch selectivo: {len(records)}/{len(wanted)} registros")
        return records

    def fetch_all(self, table: TableDefinition) -> List[SourceRecord]:
        records = list(self._parse(table, self._iter(table, sort_field=table.sort_field)))
        logger.debug(f"[{table.name}] fetch completo: {len(records)} registros")
        return records

    def _iter(self, table: TableDefinition, **kwargs) -> List[dict]:
        before = self._client.request_count
        try:
            return list(
                self._client.iter_records(
                    table_name=table.name,
                    page_size=self._page_size,
                    **kwargs,
                )
            )
        finally:
            self.calls += self._client.request_count - before

    def _parse(self, table: TableDefinition, raw_records: Iterable[dict]) -> Iterable[SourceRecord]:
        for raw in raw_records:
            try:
                yield SourceRecord.from_api(table, raw, self._last_modified_field)
            except RecordSerializationError as e:
                self.skipped += 1
                logger.warning(
                    f"[{table.name}] registro malformado {e.record_id or '?'} omitido: {e.message}"
                )
