"""
Caso de uso del pipeline de sincronización de portfolio.

Flujo (tablas en orden fijo, secuencial):
Snapshot -> detección de cambios -> fetch selectivo -> merge
-> deduplicación de assets -> variantes -> escritura de salidas.

Persistencia:
- El mapping store se guarda apenas termina la deduplicación (registra subidas ya hechas).
- Las salidas se escriben antes que snapshots y caché de registros: si la
  corrida se corta en el medio, la próxima vuelve a ver los mismos cambios.
- Snapshots y caché de todas las tablas se persisten solo si todas las
  tablas se trajeron y mergearon con éxito.
"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from portfolio_sync.application.dto.sync_dto import (
    SyncResultDTO,
    SyncStatsDTO,
    SyncStatusDTO,
    TableStatsDTO,
)
from portfolio_sync.application.interfaces.asset_mirror import AssetMirror
from portfolio_sync.application.interfaces.upstream_store import RecordSource, SnapshotSource
from portfolio_sync.application.services.asset_deduplicator import AssetDeduplicator, count_unmirrored
from portfolio_sync.application.services.change_detector import detect
from portfolio_sync.application.services.fallback_handler import RateLimitFallbackHandler
from portfolio_sync.application.services.record_merger import merge, reconcile_snapshot
from portfolio_sync.application.services.variant_builder import build_variant, select_records
from portfolio_sync.domain.entities.assets import MappingStore
from portfolio_sync.domain.entities.dataset import Dataset
from portfolio_sync.domain.entities.records import ChangeSet, Snapshot, SourceRecord, TableDefinition
from portfolio_sync.domain.entities.variant import PortfolioVariant
from portfolio_sync.domain.repositories.state_repository import (
    IDatasetRepository,
    IMappingStoreRepository,
    IRecordCacheRepository,
    ISnapshotRepository,
    ISyncStatusRepository,
)
from portfolio_sync.infrastructure.output.output_writer import OutputWriter
from portfolio_sync.shared.constants.sync_constants import SETTINGS_TABLE, SyncMode, SyncState
from portfolio_sync.shared.exceptions.sync import (
    ConfigurationError,
    FatalSyncError,
    UpstreamError,
)
from portfolio_sync.shared.utils.datetime_utils import isoformat_z, utc_now


@dataclass
class TableOutcome:
    """Resultado de una tabla: pendiente de persistir hasta que todas terminen."""

    table: TableDefinition
    records: List[SourceRecord]
    snapshot: Snapshot
    changes: ChangeSet
    full_fetch: bool
    fetched: int = 0
    skipped: int = 0


class PortfolioSyncUseCase:
    """
    Orquestador del pipeline completo para todas las variantes.

    Sin snapshot_source / record_source (faltan credenciales) no se hace
    ninguna llamada de red: se sirve el caché o se termina en FATAL.
    """

    def __init__(
        self,
        *,
        tables: Sequence[TableDefinition],
        variants: Sequence[PortfolioVariant],
        snapshot_source: Optional[SnapshotSource],
        record_source: Optional[RecordSource],
        snapshot_repository: ISnapshotRepository,
        record_cache_repository: IRecordCacheRepository,
        mapping_store_repository: IMappingStoreRepository,
        dataset_repository: IDatasetRepository,
        status_repository: ISyncStatusRepository,
        output_writer: OutputWriter,
        mirror: Optional[AssetMirror] = None,
        clock: Callable[[], str] = lambda: isoformat_z(utc_now()),
    ) -> None:
        if not variants:
            raise ConfigurationError("No hay variantes definidas", field="PORTFOLIO_VARIANTS")
        self.tables = list(tables)
        self.variants = list(variants)
        self._snapshots_source = snapshot_source
        self._records_source = record_source
        self._snapshot_repo = snapshot_repository
        self._cache_repo = record_cache_repository
        self._mapping_repo = mapping_store_repository
        self._dataset_repo = dataset_repository
        self._status_repo = status_repository
        self._writer = output_writer
        self._mirror = mirror
        self._clock = clock

    def execute(self, force_full: bool = False) -> SyncResultDTO:
        """
        Ejecuta una corrida.

        Returns:
            SyncResultDTO: estado LIVE (incremental/full/cached) o DEGRADED

        Raises:
            FatalSyncError: sin datos live ni caché para ninguna variante
            OutputSerializationError: no se pudo escribir un artefacto
        """
        started_at = self._clock()
        handler = RateLimitFallbackHandler(self._dataset_repo)
        stats = SyncStatsDTO()

        logger.info(
            f"Sync iniciado ({'full' if force_full else 'incremental'}): "
            f"{len(self.tables)} tablas, variantes={[v.id for v in self.variants]}"
        )

        if self._snapshots_source is None or self._records_source is None:
            handler.degrade(ConfigurationError("Faltan credenciales del upstream (AIRTABLE_TOKEN / AIRTABLE_BASE_ID)"))
            return self._serve_degraded(handler, started_at, stats)

        try:
            outcomes = self._fetch_tables(handler, force_full, stats)
        except UpstreamError:
            return self._serve_degraded(handler, started_at, stats)

        return self._materialize(outcomes, force_full, started_at, stats)

    def _fetch_tables(
        self,
        handler: RateLimitFallbackHandler,
        force_full: bool,
        stats: SyncStatsDTO,
    ) -> List[TableOutcome]:
        """
        Fase de red: snapshot + fetch por tabla, en orden.
        Un UpstreamError abandona la fase completa (nada se persiste).
        """
        snapshot_calls_before = self._snapshots_source.calls
        fetch_calls_before = self._records_source.calls
        outcomes: List[TableOutcome] = []
        try:
            for table in self.tables:
                outcome = self._fetch_table(handler, table, force_full)
                outcomes.append(outcome)
                changes = outcome.changes
                stats.tables[table.name] = TableStatsDTO(
                    added=len(changes.added),
                    changed=len(changes.changed),
                    deleted=len(changes.deleted),
                    unchanged=len(changes.unchanged),
                    fetched=outcome.fetched,
                    skipped=outcome.skipped,
                    full_fetch=outcome.full_fetch,
                )
                logger.info(f"[{table.name}] {changes.summary()}{' (fetch completo)' if outcome.full_fetch else ''}")
        finally:
            stats.snapshot_calls = self._snapshots_source.calls - snapshot_calls_before
            stats.fetch_calls = self._records_source.calls - fetch_calls_before
        return outcomes

    def _fetch_table(
        self,
        handler: RateLimitFallbackHandler,
        table: TableDefinition,
        force_full: bool,
    ) -> TableOutcome:
        previous = self._snapshot_repo.load(table.name)
        cached = self._cache_repo.load(table.name)

        if force_full:
            # Sin detección de cambios: se trae todo y el snapshot se proyecta de lo traído
            records = handler.call(self._records_source.fetch_all, table)
            snapshot = _project_snapshot(table, records, self._clock())
            return TableOutcome(
                table, records, snapshot, detect(previous, snapshot), full_fetch=True, fetched=len(records)
            )

        fresh = handler.call(self._snapshots_source.fetch_snapshot, table)

        if previous is None or cached is None:
            # Primera corrida o caché perdido: fetch completo. Con snapshot previo
            # los borrados siguen detectándose (limpieza del mapping store).
            changes = detect(previous, fresh)
            records = handler.call(self._records_source.fetch_all, table)
            snapshot = _project_snapshot(table, records, fresh.captured_at)
            return TableOutcome(table, records, snapshot, changes, full_fetch=True, fetched=len(records))

        changes = detect(previous, fresh)
        fetched = handler.call(self._records_source.fetch_records, table, changes.to_fetch)
        merged = merge(cached, changes, fetched)
        snapshot = reconcile_snapshot(fresh, previous, changes, [r.id for r in fetched])
        skipped = len(changes.to_fetch) - len({r.id for r in fetched})
        if skipped:
            logger.warning(f"[{table.name}] {skipped} registro(s) quedan en su versión previa hasta la próxima corrida")
        return TableOutcome(
            table, merged, snapshot, changes, full_fetch=False, fetched=len(fetched), skipped=skipped
        )

    def _materialize(
        self,
        outcomes: List[TableOutcome],
        force_full: bool,
        started_at: str,
        stats: SyncStatsDTO,
    ) -> SyncResultDTO:
        records_by_table: Dict[str, List[SourceRecord]] = {o.table.name: o.records for o in outcomes}
        scope = self._mirror_scope(outcomes, records_by_table)
        store = self._mapping_repo.load()
        fingerprints = {v.id: v.fingerprint for v in self.variants}

        if self._outputs_up_to_date(outcomes, force_full, store, scope, fingerprints):
            logger.info("Sin cambios en el upstream: salidas intactas")
            result = SyncResultDTO(
                state=SyncState.LIVE,
                mode=SyncMode.CACHED,
                started_at=started_at,
                finished_at=self._clock(),
                variants=[v.id for v in self.variants],
                stats=stats,
            )
            self._save_status(result, last_success_at=started_at, fingerprints=fingerprints)
            return result

        deleted = set().union(*(o.changes.deleted for o in outcomes)) if outcomes else set()
        if store.remove_records(deleted):
            logger.debug(f"Mapping store: {len(deleted)} registros borrados quitados del ledger")

        dedup = AssetDeduplicator(store, self._mirror)
        if dedup.enabled:
            for table, records in scope:
                dedup.process_records(table, records)
        if store.dirty:
            store.generated_at = started_at
            self._mapping_repo.save(store)
        stats.uploads = dedup.stats.uploaded
        stats.reused_assets = dedup.stats.reused
        stats.upload_failures = dedup.stats.failed

        written: List[str] = []
        for variant in self.variants:
            dataset = build_variant(records_by_table, variant, store, started_at)
            written.extend(str(p) for p in self._writer.write(dataset, variant.base_url))

        for outcome in outcomes:
            self._snapshot_repo.save(outcome.snapshot)
            self._cache_repo.save(outcome.table.name, outcome.records, started_at)

        mode = SyncMode.FULL if force_full or any(o.full_fetch for o in outcomes) else SyncMode.INCREMENTAL
        result = SyncResultDTO(
            state=SyncState.LIVE,
            mode=mode,
            started_at=started_at,
            finished_at=self._clock(),
            variants=[v.id for v in self.variants],
            written=written,
            stats=stats,
        )
        self._save_status(result, last_success_at=started_at, fingerprints=fingerprints)
        logger.success(
            f"Sync completado ({mode.value}): {len(self.variants)} variantes, "
            f"subidas={stats.uploads}, reutilizados={stats.reused_assets}, fallos={stats.upload_failures}"
        )
        return result

    def _outputs_up_to_date(
        self,
        outcomes: List[TableOutcome],
        force_full: bool,
        store: MappingStore,
        scope: List[Tuple[TableDefinition, List[SourceRecord]]],
        fingerprints: Dict[str, str],
    ) -> bool:
        """
        Camino rápido: las salidas vigentes sirven tal cual solo si

        - no hubo cambios en el upstream ni fetch completo,
        - existen los artefactos de todas las variantes,
        - se generaron con la misma definición de cada variante,
        - con mirror activo, no quedan adjuntos publicados sin subir.
        """
        if force_full or any(o.full_fetch or o.changes.has_changes for o in outcomes):
            return False
        if not all(self._dataset_repo.exists(v.output_namespace) for v in self.variants):
            return False

        previous = (self._status_repo.load() or {}).get("variant_fingerprints") or {}
        stale = [variant_id for variant_id, fp in fingerprints.items() if previous.get(variant_id) != fp]
        if stale:
            logger.info(f"Configuración de variantes cambiada ({stale}): se regeneran las salidas")
            return False

        if self._mirror is not None:
            pending = sum(count_unmirrored(store, table, records) for table, records in scope)
            if pending:
                logger.info(f"{pending} adjunto(s) publicados sin mirror: se reintenta la subida")
                return False
        return True

    def _mirror_scope(
        self,
        outcomes: List[TableOutcome],
        records_by_table: Dict[str, List[SourceRecord]],
    ) -> List[Tuple[TableDefinition, List[SourceRecord]]]:
        """
        Registros que alguna variante publica (más la fila de Settings de
        cada una), tabla por tabla en el orden fijo.
        """
        wanted: Dict[str, set] = {}
        for variant in self.variants:
            selection = select_records(records_by_table, variant)
            for record in selection.projects + selection.posts:
                wanted.setdefault(record.table, set()).add(record.id)
            if selection.settings_row is not None:
                wanted.setdefault(SETTINGS_TABLE, set()).add(selection.settings_row.id)

        scope = []
        for outcome in outcomes:
            ids = wanted.get(outcome.table.name)
            if ids:
                scope.append((outcome.table, [r for r in outcome.records if r.id in ids]))
        return scope

    def _serve_degraded(
        self,
        handler: RateLimitFallbackHandler,
        started_at: str,
        stats: SyncStatsDTO,
    ) -> SyncResultDTO:
        previous_status = self._status_repo.load() or {}
        last_success_at = previous_status.get("last_success_at")
        # Las salidas no se tocan: se conservan las huellas con que se generaron
        fingerprints = previous_status.get("variant_fingerprints") or {}
        try:
            datasets: Dict[str, Dataset] = handler.serve_cache(self.variants, started_at)
        except FatalSyncError:
            self._save_status(
                SyncResultDTO(
                    state=SyncState.FATAL,
                    mode=SyncMode.DEGRADED,
                    started_at=started_at,
                    finished_at=self._clock(),
                    missing_variants=handler.missing_variants,
                    reason=handler.reason,
                    stats=stats,
                ),
                last_success_at=last_success_at,
                fingerprints=fingerprints,
            )
            raise

        result = SyncResultDTO(
            state=SyncState.DEGRADED,
            mode=SyncMode.DEGRADED,
            started_at=started_at,
            finished_at=self._clock(),
            variants=list(datasets),
            missing_variants=handler.missing_variants,
            reason=handler.reason,
            stats=stats,
        )
        self._save_status(result, last_success_at=last_success_at, fingerprints=fingerprints)
        logger.warning(f"Sync degradado: se sirvieron {len(datasets)} variantes desde caché ({handler.reason})")
        return result

    def _save_status(
        self,
        result: SyncResultDTO,
        last_success_at: Optional[str],
        fingerprints: Dict[str, str],
    ) -> None:
        status = SyncStatusDTO(
            state=result.state,
            mode=result.mode,
            last_attempted_at=result.started_at,
            last_success_at=last_success_at,
            reason=result.reason,
            stats=result.stats,
            variant_fingerprints=fingerprints,
        )
        self._status_repo.save(status.model_dump(mode="json"))


def _project_snapshot(table: TableDefinition, records: Sequence[SourceRecord], captured_at: str) -> Snapshot:
    return Snapshot(
        table=table.name,
        entries={r.id: r.last_modified for r in records},
        captured_at=captured_at,
    )
