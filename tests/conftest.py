"""
Configuración de fixtures para pytest.

Todos los colaboradores de red se reemplazan por fakes en memoria:
- FakeUpstream: tablas Airtable como dicts {id: registro crudo}
- FakeSnapshotSource / FakeRecordSource: cuentan llamadas como los fetchers reales
- FakeMirror: cuenta subidas y puede fallar por target_name
Los repositorios de estado son los reales (JSON) sobre tmp_path.
"""
from __future__ import annotations

import itertools
from typing import Any, Callable, Collection, Dict, List, Optional, Sequence

import pytest

from portfolio_sync.application.interfaces.asset_mirror import MirrorUploadResult
from portfolio_sync.application.use_cases.sync_use_cases import PortfolioSyncUseCase
from portfolio_sync.domain.entities.records import (
    Snapshot,
    SourceRecord,
    TableDefinition,
    extract_last_modified,
)
from portfolio_sync.domain.entities.variant import PortfolioVariant
from portfolio_sync.infrastructure.output.output_writer import OutputWriter
from portfolio_sync.infrastructure.repositories.json_state_repository import (
    JsonDatasetRepository,
    JsonMappingStoreRepository,
    JsonRecordCacheRepository,
    JsonSnapshotRepository,
    JsonSyncStatusRepository,
)
from portfolio_sync.shared.exceptions.sync import RecordSerializationError, UploadFailure

LAST_MOD_FIELD = "Last Modified"

PROJECTS = TableDefinition("Projects", ("Gallery",), "Release Date")
JOURNAL = TableDefinition("Journal", ("Cover Image",), "Date")
SETTINGS = TableDefinition(
    "Settings",
    ("Logo", "Favicon", "About Image", "Showreel Placeholder", "Default OG Image"),
)


# =============================================================================
# Builders de payloads crudos
# =============================================================================

def make_attachment(
    att_id: str,
    filename: str = "still.jpg",
    size: int = 1000,
    mime: str = "image/jpeg",
    url: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "id": att_id,
        "filename": filename,
        "size": size,
        "type": mime,
        "url": url or f"https://dl.airtable.test/{att_id}/{filename}?sig=1",
    }


def make_raw(record_id: str, last_modified: str = "2024-01-01T00:00:00.000Z", **fields: Any) -> Dict[str, Any]:
    """Registro crudo como lo devuelve Airtable. Los kwargs usan '_' en lugar de espacios."""
    payload = {key.replace("_", " "): value for key, value in fields.items()}
    payload[LAST_MOD_FIELD] = last_modified
    return {"id": record_id, "createdTime": "2023-01-01T00:00:00.000Z", "fields": payload}


def make_record(table: TableDefinition, raw: Dict[str, Any]) -> SourceRecord:
    return SourceRecord.from_api(table, raw, LAST_MOD_FIELD)


# =============================================================================
# Fakes del upstream
# =============================================================================

class FakeUpstream:
    """Estado del store tabular: nombre de tabla -> {id: registro crudo}."""

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None) -> None:
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        for name, records in (tables or {}).items():
            self.tables[name] = {r["id"]: r for r in records}
        # (operación, tabla) -> excepción a lanzar; operación: snapshot | fetch
        self.failures: Dict[tuple, Exception] = {}

    def put(self, table: str, raw: Dict[str, Any]) -> None:
        self.tables.setdefault(table, {})[raw["id"]] = raw

    def delete(self, table: str, record_id: str) -> None:
        self.tables.get(table, {}).pop(record_id, None)

    def touch(self, table: str, record_id: str, last_modified: str, **fields: Any) -> None:
        raw = self.tables[table][record_id]
        raw["fields"].update({key.replace("_", " "): value for key, value in fields.items()})
        raw["fields"][LAST_MOD_FIELD] = last_modified

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return list(self.tables.get(table, {}).values())

    def check(self, operation: str, table: str) -> None:
        error = self.failures.get((operation, table))
        if error is not None:
            raise error


class FakeSnapshotSource:
    def __init__(self, upstream: FakeUpstream) -> None:
        self.upstream = upstream
        self.calls = 0
        self.tables_requested: List[str] = []

    def fetch_snapshot(self, table: TableDefinition) -> Snapshot:
        self.upstream.check("snapshot", table.name)
        self.calls += 1
        self.tables_requested.append(table.name)
        entries = {
            raw["id"]: extract_last_modified(raw, LAST_MOD_FIELD)
            for raw in self.upstream.rows(table.name)
        }
        return Snapshot(table=table.name, entries=entries, captured_at="2024-06-01T00:00:00.000Z")


class FakeRecordSource:
    """Una llamada por lote de ids (batch_size) y una por fetch completo."""

    def __init__(self, upstream: FakeUpstream, batch_size: int = 50) -> None:
        self.upstream = upstream
        self.batch_size = batch_size
        self.calls = 0
        self.requested_ids: List[List[str]] = []
        self.full_fetches: List[str] = []

    def _parse(self, table: TableDefinition, raws: Sequence[Dict[str, Any]]) -> List[SourceRecord]:
        records = []
        for raw in raws:
            try:
                records.append(SourceRecord.from_api(table, raw, LAST_MOD_FIELD))
            except RecordSerializationError:
                continue
        return records

    def fetch_records(self, table: TableDefinition, record_ids: Collection[str]) -> List[SourceRecord]:
        wanted = sorted(set(record_ids))
        if not wanted:
            return []
        self.upstream.check("fetch", table.name)
        rows = self.upstream.tables.get(table.name, {})
        result: List[SourceRecord] = []
        for start in range(0, len(wanted), self.batch_size):
            batch = wanted[start:start + self.batch_size]
            self.calls += 1
            self.requested_ids.append(batch)
            result.extend(self._parse(table, [rows[i] for i in batch if i in rows]))
        return result

    def fetch_all(self, table: TableDefinition) -> List[SourceRecord]:
        self.upstream.check("fetch", table.name)
        self.calls += 1
        self.full_fetches.append(table.name)
        return self._parse(table, self.upstream.rows(table.name))


class FakeMirror:
    """AssetMirror en memoria: URL estable por target_name."""

    def __init__(self) -> None:
        self.uploads: List[Dict[str, Any]] = []
        self.fail_targets: set = set()

    @property
    def upload_count(self) -> int:
        return len(self.uploads)

    def upload(
        self,
        *,
        source_url: str,
        target_name: str,
        overwrite: bool = True,
        invalidate: bool = True,
    ) -> MirrorUploadResult:
        if target_name in self.fail_targets:
            raise UploadFailure("fallo simulado", target_name=target_name)
        self.uploads.append(
            {"source_url": source_url, "target_name": target_name, "overwrite": overwrite, "invalidate": invalidate}
        )
        return MirrorUploadResult(
            mirror_url=f"https://res.mirror.test/{target_name}.jpg",
            format="jpg",
            bytes=1000,
        )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def variants() -> List[PortfolioVariant]:
    return [
        PortfolioVariant.from_dict({"id": "directing", "display_status_field": "Display Status"}),
        PortfolioVariant.from_dict({"id": "postproduction", "display_status_field": "Display Status (Post)"}),
    ]


@pytest.fixture
def upstream() -> FakeUpstream:
    """Base chica: 3 proyectos, 1 post y una fila de Settings por variante."""
    return FakeUpstream(
        {
            "Projects": [
                make_raw(
                    "recP1",
                    "2024-01-01T00:00:00.000Z",
                    Name="night swim",
                    Display_Status="Featured",
                    Role=["Director"],
                    Release_Date="2023-05-01",
                    Project_Type="Narrative",
                    Gallery=[make_attachment("attA1"), make_attachment("attA2", "b.jpg")],
                ),
                make_raw(
                    "recP2",
                    "2024-01-02T00:00:00.000Z",
                    Name="Brand Film",
                    Display_Status="Visible",
                    **{"Display_Status_(Post)": "Visible"},
                    Role=["Director", "Colourist"],
                    Release_Date="2022-03-01",
                    Project_Type="Commercial",
                    Gallery=[make_attachment("attB1")],
                ),
                make_raw(
                    "recP3",
                    "2024-01-03T00:00:00.000Z",
                    Name="Grade Only",
                    **{"Display_Status_(Post)": "Visible"},
                    Role=["Colourist"],
                    Release_Date="2021-01-01",
                ),
            ],
            "Journal": [
                make_raw(
                    "recJ1",
                    "2024-01-04T00:00:00.000Z",
                    Title="On Set",
                    Status="Published",
                    Date="2024-02-01",
                    Content="A short note about the shoot.",
                    Cover_Image=[make_attachment("attJ1", "cover.jpg")],
                ),
            ],
            "Settings": [
                make_raw(
                    "recS1",
                    "2024-01-05T00:00:00.000Z",
                    Portfolio_ID="directing",
                    Site_Title="Jane Doe",
                    Domain="janedoe.test",
                    Has_Journal=True,
                    Allowed_Roles="Director",
                    Logo=[make_attachment("attL1", "logo.png", mime="image/png")],
                ),
                make_raw(
                    "recS2",
                    "2024-01-06T00:00:00.000Z",
                    Portfolio_ID="postproduction",
                    Site_Title="Jane Doe Post",
                    Domain="post.janedoe.test",
                    Allowed_Roles="Colourist",
                ),
            ],
        }
    )


@pytest.fixture
def mirror() -> FakeMirror:
    return FakeMirror()


@pytest.fixture
def clock() -> Callable[[], str]:
    """Reloj determinista: cada llamada avanza un segundo."""
    counter = itertools.count()
    return lambda: f"2024-06-01T00:00:{next(counter) % 60:02d}.000Z"


@pytest.fixture
def build_pipeline(tmp_path, variants, clock):
    """
    Construye el caso de uso sobre repositorios JSON reales en tmp_path.

    Retorna (use_case, snapshot_source, record_source).
    """
    def _build(
        upstream: Optional[FakeUpstream],
        mirror: Optional[FakeMirror] = None,
        tables: Sequence[TableDefinition] = (PROJECTS, JOURNAL, SETTINGS),
        variant_list: Optional[Sequence[PortfolioVariant]] = None,
    ):
        snapshot_source = FakeSnapshotSource(upstream) if upstream is not None else None
        record_source = FakeRecordSource(upstream) if upstream is not None else None
        use_case = PortfolioSyncUseCase(
            tables=tables,
            variants=variant_list if variant_list is not None else variants,
            snapshot_source=snapshot_source,
            record_source=record_source,
            snapshot_repository=JsonSnapshotRepository(tmp_path / "state"),
            record_cache_repository=JsonRecordCacheRepository(tmp_path / "state"),
            mapping_store_repository=JsonMappingStoreRepository(tmp_path / "state"),
            dataset_repository=JsonDatasetRepository(tmp_path / "public"),
            status_repository=JsonSyncStatusRepository(tmp_path / "state"),
            output_writer=OutputWriter(tmp_path / "public"),
            mirror=mirror,
            clock=clock,
        )
        return use_case, snapshot_source, record_source

    return _build


def read_outputs(directory) -> Dict[str, bytes]:
    """Contenido binario de todos los artefactos de salida, por nombre."""
    return {p.name: p.read_bytes() for p in sorted(directory.iterdir()) if p.is_file()}
