"""
Endpoints para disparar el pipeline de sincronizacion desde HTTP.

El pipeline es sincrono (requests + escritura de archivos); se ejecuta en un
thread separado para no bloquear el event loop.
"""
import asyncio
import threading
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger

from portfolio_sync.api.v1.dependencies.use_case_deps import get_status_repository, get_sync_use_case
from portfolio_sync.application.dto.sync_dto import SyncResultDTO
from portfolio_sync.application.use_cases.sync_use_cases import PortfolioSyncUseCase
from portfolio_sync.domain.repositories.state_repository import ISyncStatusRepository


router = APIRouter(prefix="/sync", tags=["Sync"])

# Un solo writer por directorio de salida dentro de este proceso
_sync_lock = threading.Lock()


def _run_locked(use_case: PortfolioSyncUseCase, force_full: bool) -> SyncResultDTO:
    if not _sync_lock.acquire(blocking=False):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Ya hay una sincronizacion en curso",
        )
    try:
        return use_case.execute(force_full=force_full)
    finally:
        _sync_lock.release()


@router.post(
    "",
    response_model=SyncResultDTO,
    status_code=status.HTTP_200_OK,
    summary="Ejecutar una corrida del pipeline de sincronizacion",
)
async def run_sync(
    force_full: bool = Query(
        default=False,
        description="Si True, ignora la deteccion de cambios y trae todas las tablas completas.",
    ),
    use_case: PortfolioSyncUseCase = Depends(get_sync_use_case),
) -> SyncResultDTO:
    """
    Ejecuta una corrida del pipeline.

    - Sin cambios upstream: modo `cached`, no se escribe nada.
    - Cuota excedida o upstream caido: estado `degraded`, se sirve el caché.
    - Sin datos live ni caché: FatalSyncError -> 503.
    """
    logger.info(f"Sincronizacion {'completa' if force_full else 'incremental'} solicitada desde API")
    return await asyncio.to_thread(_run_locked, use_case, force_full)


@router.get(
    "/status",
    summary="Estado de la ultima corrida (sync-status.json)",
)
async def get_sync_status(
    status_repository: ISyncStatusRepository = Depends(get_status_repository),
) -> Dict[str, Any]:
    data = status_repository.load()
    if data is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Todavia no se ejecuto ninguna sincronizacion",
        )
    return data
