"""
Merge puro entre el caché de registros y los deltas recién traídos.

Sin I/O ni efectos secundarios: testeable sin red.
"""
from typing import Dict, Iterable, List, Optional, Sequence

from loguru import logger

from portfolio_sync.domain.entities.records import ChangeSet, Snapshot, SourceRecord


def merge(
    cached: Sequence[SourceRecord],
    changes: ChangeSet,
    fetched: Iterable[SourceRecord],
) -> List[SourceRecord]:
    """
    Combina el conjunto cacheado con los registros traídos.

    Reglas:
    - `deleted`: se quitan del conjunto
    - `added` / `changed`: se reemplazan completos por la versión traída
      (nunca parche campo a campo)
    - `unchanged`: se copian del caché tal cual

    Un id de `to_fetch` que no llegó en `fetched` (registro malformado que se
    saltó) conserva su versión cacheada si existía; si era nuevo queda afuera.

    El orden resultante es el del caché, con los nuevos al final en el orden
    en que se trajeron.
    """
    fresh_by_id: Dict[str, SourceRecord] = {}
    for record in fetched:
        if record.id in changes.to_fetch:
            fresh_by_id[record.id] = record

    merged: List[SourceRecord] = []
    seen = set()
    for record in cached:
        if record.id in changes.deleted or record.id in seen:
            continue
        seen.add(record.id)
        merged.append(fresh_by_id.get(record.id, record))

    for record_id, record in fresh_by_id.items():
        if record_id not in seen:
            seen.add(record_id)
            merged.append(record)

    expected = len(cached) - len(changes.deleted) + len(changes.added)
    if len(merged) != expected:
        logger.debug(
            f"[{changes.table}] merge con {len(merged)} registros (esperados {expected}); "
            f"hay registros nuevos pendientes de reintento"
        )
    return merged


def reconcile_snapshot(
    fresh: Snapshot,
    previous: Optional[Snapshot],
    changes: ChangeSet,
    fetched_ids: Iterable[str],
) -> Snapshot:
    """
    Snapshot a persistir para la próxima corrida.

    Los ids que debían traerse y no llegaron vuelven a su timestamp previo
    (o se omiten si eran nuevos), así la próxima corrida los reintenta.
    """
    fetched = set(fetched_ids)
    before = previous.entries if previous is not None else {}
    entries: Dict[str, str] = {}
    for record_id, timestamp in fresh.entries.items():
        if record_id in changes.to_fetch and record_id not in fetched:
            if record_id in before:
                entries[record_id] = before[record_id]
            continue
        entries[record_id] = timestamp
    return Snapshot(table=fresh.table, entries=entries, captured_at=fresh.captured_at)
