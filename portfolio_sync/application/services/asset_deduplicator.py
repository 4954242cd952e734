"""
Deduplicador de assets y subida al mirror.

Decisión central: el ledger se consulta por identidad intrínseca del adjunto
(id, filename, size, type), nunca por URL. El upstream rota las URLs firmadas
del mismo archivo; comparar por URL provocaría re-subir todo en cada corrida.

Matching por slot (campo, índice) dentro del registro:
- misma identidad en el slot -> se reutiliza la mirror URL (0 subidas)
- slot vacío o identidad distinta -> se sube con overwrite + invalidate
- falla la subida -> WARNING, se usa la URL de origen, el ledger no se toca
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional

from loguru import logger

from portfolio_sync.application.interfaces.asset_mirror import AssetMirror
from portfolio_sync.domain.entities.assets import (
    MappingStore,
    MirroredAsset,
    compute_asset_identity,
)
from portfolio_sync.domain.entities.records import Attachment, SourceRecord, TableDefinition
from portfolio_sync.shared.exceptions.sync import UploadFailure
from portfolio_sync.shared.utils.text_utils import slugify


@dataclass
class DedupStats:
    uploaded: int = 0
    reused: int = 0
    failed: int = 0
    origin_refreshed: int = 0
    pruned: int = 0


def build_target_name(table: TableDefinition, record_id: str, field: str, index: int) -> str:
    """Public id determinista en el CDN: misma ranura -> mismo objeto (se sobreescribe)."""
    return f"portfolio-{table.slug}-{record_id}-{slugify(field)}-{index}"


def resolve_asset_url(
    store: MappingStore,
    record: SourceRecord,
    field: str,
    index: int,
    attachment: Attachment,
) -> str:
    """
    URL a publicar para un adjunto: la del mirror si el slot tiene la misma
    identidad, si no la URL de origen.
    """
    asset = store.find(record.id, field, index)
    if asset is not None and asset.identity == compute_asset_identity(attachment):
        return asset.mirror_url
    return attachment.url


def resolve_field_urls(store: MappingStore, record: SourceRecord, field: str) -> List[str]:
    return [
        resolve_asset_url(store, record, field, index, attachment)
        for index, attachment in enumerate(record.attachments(field))
    ]


def count_unmirrored(store: MappingStore, table: TableDefinition, records: Iterable[SourceRecord]) -> int:
    """Adjuntos sin slot vigente en el ledger (nunca subidos o con subida fallida)."""
    pending = 0
    for record in records:
        for field in table.attachment_fields:
            for index, attachment in enumerate(record.attachments(field)):
                asset = store.find(record.id, field, index)
                if asset is None or asset.identity != compute_asset_identity(attachment):
                    pending += 1
    return pending


class AssetDeduplicator:
    """
    Mantiene el mapping store al día para un conjunto de registros.

    Con mirror=None el deduplicador queda deshabilitado: no sube ni modifica
    el ledger, y las salidas usan las URLs de origen (o las ya mapeadas).
    """

    def __init__(self, store: MappingStore, mirror: Optional[AssetMirror] = None) -> None:
        self._store = store
        self._mirror = mirror
        self.stats = DedupStats()

    @property
    def enabled(self) -> bool:
        return self._mirror is not None

    @property
    def store(self) -> MappingStore:
        return self._store

    def process_records(self, table: TableDefinition, records: Iterable[SourceRecord]) -> None:
        for record in records:
            self.process_record(table, record)

    def process_record(self, table: TableDefinition, record: SourceRecord) -> None:
        """
        Recorre los adjuntos del registro en orden (campo, índice) y decide
        reutilizar o subir cada uno.
        """
        if not self.enabled or not table.attachment_fields:
            return

        slots = []
        for field in table.attachment_fields:
            for index, attachment in enumerate(record.attachments(field)):
                slots.append((field, index))
                self._process_slot(table, record, field, index, attachment)

        pruned = self._store.retain_slots(record.id, slots)
        if pruned:
            self.stats.pruned += pruned
            logger.debug(f"[{table.name}] {record.id}: {pruned} slot(s) obsoletos quitados del ledger")

    def _process_slot(
        self,
        table: TableDefinition,
        record: SourceRecord,
        field: str,
        index: int,
        attachment: Attachment,
    ) -> None:
        identity = compute_asset_identity(attachment)
        existing = self._store.find(record.id, field, index)

        if existing is not None and existing.identity == identity:
            self.stats.reused += 1
            if existing.origin_url != attachment.url:
                self._store.upsert(
                    record.id, existing.with_origin_url(attachment.url), table.attachment_fields
                )
                self.stats.origin_refreshed += 1
            logger.debug(f"[{table.name}] {record.id} {field}[{index}]: reutilizado ({existing.mirror_url})")
            return

        target_name = build_target_name(table, record.id, field, index)
        reason = "nuevo" if existing is None else "contenido cambiado"
        try:
            result = self._mirror.upload(
                source_url=attachment.url,
                target_name=target_name,
                overwrite=True,
                invalidate=True,
            )
        except UploadFailure as e:
            self.stats.failed += 1
            logger.warning(
                f"[{table.name}] {record.id} {field}[{index}]: falló la subida al mirror "
                f"({e.message}); se usa la URL de origen"
            )
            return

        self._store.upsert(
            record.id,
            MirroredAsset(
                identity=identity,
                origin_url=attachment.url,
                mirror_url=result.mirror_url,
                format=result.format,
                bytes=result.bytes or attachment.size,
                table=table.name,
                field=field,
                index=index,
                target_name=target_name,
                source_attachment_id=attachment.id,
            ),
            table.attachment_fields,
        )
        self.stats.uploaded += 1
        logger.debug(f"[{table.name}] {record.id} {field}[{index}]: subido ({reason}) -> {result.mirror_url}")
