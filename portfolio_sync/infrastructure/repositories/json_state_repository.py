"""
Repositorios de estado respaldados por archivos JSON.

Todas las escrituras pasan por atomic_write_json. Los archivos ilegibles se
tratan como ausentes: son cachés regenerables, no fuente de verdad.
"""
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from loguru import logger
from pydantic import ValidationError

from portfolio_sync.domain.entities.assets import MappingStore
from portfolio_sync.domain.entities.dataset import Dataset
from portfolio_sync.domain.entities.records import Snapshot, SourceRecord
from portfolio_sync.domain.repositories.state_repository import (
    IDatasetRepository,
    IMappingStoreRepository,
    IRecordCacheRepository,
    ISnapshotRepository,
    ISyncStatusRepository,
)
from portfolio_sync.infrastructure.storage.atomic_writer import atomic_write_json, read_json
from portfolio_sync.shared.constants.sync_constants import MAPPING_STORE_FILE, SYNC_STATUS_FILE
from portfolio_sync.shared.utils.text_utils import slugify

PathLike = Union[str, Path]


def dataset_path(output_dir: PathLike, output_namespace: str) -> Path:
    return Path(output_dir) / f"dataset-{output_namespace}.json"


class JsonSnapshotRepository(ISnapshotRepository):
    """snapshot-{tabla}.json en el directorio de estado."""

    def __init__(self, state_dir: PathLike):
        self.state_dir = Path(state_dir)

    def path_for(self, table: str) -> Path:
        return self.state_dir / f"snapshot-{slugify(table)}.json"

    def load(self, table: str) -> Optional[Snapshot]:
        data = read_json(self.path_for(table))
        if not isinstance(data, dict):
            return None
        try:
            return Snapshot.from_dict({"table": table, **data})
        except (KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Snapshot de '{table}' inválido ({e}); se trata como primera corrida")
            return None

    def save(self, snapshot: Snapshot) -> None:
        atomic_write_json(self.path_for(snapshot.table), snapshot.to_dict())


class JsonRecordCacheRepository(IRecordCacheRepository):
    """records-{tabla}.json: conjunto completo que usa el merger."""

    def __init__(self, state_dir: PathLike):
        self.state_dir = Path(state_dir)

    def path_for(self, table: str) -> Path:
        return self.state_dir / f"records-{slugify(table)}.json"

    def load(self, table: str) -> Optional[List[SourceRecord]]:
        data = read_json(self.path_for(table))
        if not isinstance(data, dict):
            return None
        try:
            return [SourceRecord.from_dict(table, item) for item in data.get("records") or []]
        except (KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Caché de registros de '{table}' inválido ({e}); se fuerza fetch completo")
            return None

    def save(self, table: str, records: List[SourceRecord], generated_at: str) -> None:
        atomic_write_json(
            self.path_for(table),
            {
                "table": table,
                "generatedAt": generated_at,
                "records": [r.to_dict() for r in records],
            },
        )


class JsonMappingStoreRepository(IMappingStoreRepository):
    """mapping-store.json: ledger de deduplicación."""

    def __init__(self, state_dir: PathLike):
        self.path = Path(state_dir) / MAPPING_STORE_FILE

    def load(self) -> MappingStore:
        data = read_json(self.path)
        if not isinstance(data, dict):
            return MappingStore()
        try:
            return MappingStore.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Mapping store inválido ({e}); se empieza vacío (habrá re-subidas)")
            return MappingStore()

    def save(self, store: MappingStore) -> None:
        atomic_write_json(self.path, store.to_dict())
        store.dirty = False


class JsonDatasetRepository(IDatasetRepository):
    """Lee dataset-{namespace}.json del directorio de salida."""

    def __init__(self, output_dir: PathLike):
        self.output_dir = Path(output_dir)

    def exists(self, output_namespace: str) -> bool:
        return dataset_path(self.output_dir, output_namespace).exists()

    def load(self, output_namespace: str) -> Optional[Dataset]:
        data = read_json(dataset_path(self.output_dir, output_namespace))
        if data is None:
            return None
        try:
            return Dataset.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Dataset '{output_namespace}' inválido: {e.error_count()} errores; se ignora")
            return None


class JsonSyncStatusRepository(ISyncStatusRepository):
    """sync-status.json: estado y sello 'last attempted' de la última corrida."""

    def __init__(self, state_dir: PathLike):
        self.path = Path(state_dir) / SYNC_STATUS_FILE

    def load(self) -> Optional[Dict[str, Any]]:
        data = read_json(self.path)
        return data if isinstance(data, dict) else None

    def save(self, status: Dict[str, Any]) -> None:
        atomic_write_json(self.path, status)
