"""
Casos de uso de la aplicacion.
"""
from .sync_use_cases import PortfolioSyncUseCase

__all__ = ["PortfolioSyncUseCase"]
