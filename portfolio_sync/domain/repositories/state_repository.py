"""
Interfaces de los repositorios de estado del pipeline.

El snapshot, el caché de registros y el mapping store funcionan como estado
global entre corridas. Se inyectan como repositorios para que el detector de
cambios y el deduplicador puedan testearse con fakes en memoria.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from portfolio_sync.domain.entities.assets import MappingStore
from portfolio_sync.domain.entities.dataset import Dataset
from portfolio_sync.domain.entities.records import Snapshot, SourceRecord


class ISnapshotRepository(ABC):
    """Snapshot (id -> lastModified) persistido por tabla: la línea base de comparación."""

    @abstractmethod
    def load(self, table: str) -> Optional[Snapshot]:
        """
        Obtiene el snapshot de la corrida anterior.

        Returns:
            Optional[Snapshot]: None en la primera corrida
        """
        pass

    @abstractmethod
    def save(self, snapshot: Snapshot) -> None:
        pass


class IRecordCacheRepository(ABC):
    """Conjunto completo de registros de la última corrida exitosa, por tabla."""

    @abstractmethod
    def load(self, table: str) -> Optional[List[SourceRecord]]:
        pass

    @abstractmethod
    def save(self, table: str, records: List[SourceRecord], generated_at: str) -> None:
        pass


class IMappingStoreRepository(ABC):
    """Ledger de deduplicación de assets."""

    @abstractmethod
    def load(self) -> MappingStore:
        """
        Carga el mapping store. Si no existe o está corrupto retorna uno vacío:
        es un caché, perderlo solo cuesta re-subidas.
        """
        pass

    @abstractmethod
    def save(self, store: MappingStore) -> None:
        pass


class IDatasetRepository(ABC):
    """Lectura del último dataset escrito por variante (fallback y API)."""

    @abstractmethod
    def load(self, output_namespace: str) -> Optional[Dataset]:
        pass

    @abstractmethod
    def exists(self, output_namespace: str) -> bool:
        pass


class ISyncStatusRepository(ABC):
    """Estado de la última corrida (incluye el sello 'last attempted')."""

    @abstractmethod
    def load(self) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def save(self, status: Dict[str, Any]) -> None:
        pass
