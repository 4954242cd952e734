"""
Dependencias para inyeccion de casos de uso y repositorios de estado.
"""
from fastapi import Depends

from portfolio_sync.application.use_cases.sync_use_cases import PortfolioSyncUseCase
from portfolio_sync.core.config import Settings, settings as app_settings
from portfolio_sync.domain.repositories.state_repository import IDatasetRepository, ISyncStatusRepository
from portfolio_sync.infrastructure.pipeline_factory import build_from_settings
from portfolio_sync.infrastructure.repositories.json_state_repository import (
    JsonDatasetRepository,
    JsonSyncStatusRepository,
)


def get_settings() -> Settings:
    """Configuracion global de la aplicacion."""
    return app_settings


def get_sync_use_case(settings: Settings = Depends(get_settings)) -> PortfolioSyncUseCase:
    """
    Dependencia para obtener el caso de uso de sincronizacion.

    Raises:
        ConfigurationError: configuracion invalida (se responde como JSON)
    """
    return build_from_settings(settings)


def get_dataset_repository(settings: Settings = Depends(get_settings)) -> IDatasetRepository:
    return JsonDatasetRepository(settings.OUTPUT_DIR)


def get_status_repository(settings: Settings = Depends(get_settings)) -> ISyncStatusRepository:
    return JsonSyncStatusRepository(settings.effective_state_dir)
