"""
Data Transfer Objects (DTOs) para la capa de aplicacion.
"""
from .sync_dto import SyncResultDTO, SyncStatsDTO, SyncStatusDTO, TableStatsDTO

__all__ = [
    "SyncResultDTO",
    "SyncStatsDTO",
    "SyncStatusDTO",
    "TableStatsDTO",
]
