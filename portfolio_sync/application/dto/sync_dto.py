"""
DTOs del pipeline de sincronización.

Se usan como resultado del caso de uso, cuerpo de respuesta de la API y
contenido de sync-status.json.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from portfolio_sync.shared.constants.sync_constants import SyncMode, SyncState


class TableStatsDTO(BaseModel):
    """Conteos de cambios de una tabla en la corrida."""

    added: int = 0
    changed: int = 0
    deleted: int = 0
    unchanged: int = 0
    fetched: int = 0
    skipped: int = 0
    full_fetch: bool = False


class SyncStatsDTO(BaseModel):
    """Métricas de costo de la corrida: llamadas al upstream y al mirror."""

    tables: Dict[str, TableStatsDTO] = Field(default_factory=dict)
    snapshot_calls: int = 0
    fetch_calls: int = 0
    uploads: int = 0
    reused_assets: int = 0
    upload_failures: int = 0


class SyncResultDTO(BaseModel):
    """Resultado de una corrida del pipeline."""

    state: SyncState
    mode: SyncMode
    started_at: str
    finished_at: str
    variants: List[str] = Field(default_factory=list, description="Variantes servidas en esta corrida")
    written: List[str] = Field(default_factory=list, description="Archivos escritos (vacío si no hubo cambios o en modo degradado)")
    missing_variants: List[str] = Field(default_factory=list)
    reason: Optional[str] = None
    stats: SyncStatsDTO = Field(default_factory=SyncStatsDTO)


class SyncStatusDTO(BaseModel):
    """Contenido de sync-status.json."""

    state: SyncState
    mode: SyncMode
    last_attempted_at: str
    last_success_at: Optional[str] = None
    reason: Optional[str] = None
    stats: SyncStatsDTO = Field(default_factory=SyncStatsDTO)
    variant_fingerprints: Dict[str, str] = Field(
        default_factory=dict,
        description="Huella de cada variante con la que se generaron las salidas vigentes",
    )
