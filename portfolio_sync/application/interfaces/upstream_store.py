"""
Interfaces hacia el store tabular upstream (snapshot y fetch selectivo).

El caso de uso depende de estos contratos; las implementaciones reales
viven en infrastructure/external/airtable_sync.
"""

from __future__ import annotations

from typing import Collection, List, Protocol

from portfolio_sync.domain.entities.records import Snapshot, SourceRecord, TableDefinition


class SnapshotSource(Protocol):
    calls: int  # requests HTTP emitidos (métrica de costo)

    def fetch_snapshot(self, table: TableDefinition) -> Snapshot:
        """
        Snapshot completo (id -> lastModified) con la mínima proyección de campos.

        Una tabla vacía retorna un snapshot vacío. Los errores de transporte
        se propagan; no reintenta por su cuenta más allá del cliente HTTP.
        """
        ...


class RecordSource(Protocol):
    calls: int

    def fetch_records(self, table: TableDefinition, record_ids: Collection[str]) -> List[SourceRecord]:
        """
        Registros completos para exactamente esos ids, en lotes.

        Con un conjunto vacío no hace ninguna llamada de red.
        Registros malformados se saltan (WARNING) y no aparecen en el resultado.
        """
        ...

    def fetch_all(self, table: TableDefinition) -> List[SourceRecord]:
        """Todos los registros de la tabla (modo full sync)."""
        ...
