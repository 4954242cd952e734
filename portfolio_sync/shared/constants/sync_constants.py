"""
Constantes del pipeline de sincronización.
Define estados del handler de fallback, modos de corrida y nombres de tablas.
"""
from enum import Enum


class SyncState(str, Enum):
    """Estados del handler de rate-limit / fallback."""
    LIVE = "live"
    DEGRADED = "degraded"
    FATAL = "fatal"


class SyncMode(str, Enum):
    """Cómo se obtuvo el resultado de una corrida."""
    INCREMENTAL = "incremental"
    FULL = "full"
    CACHED = "cached"        # sin cambios upstream: salidas intactas
    DEGRADED = "degraded"    # upstream no disponible: se sirvió el caché


PROJECTS_TABLE = "Projects"
JOURNAL_TABLE = "Journal"
FESTIVALS_TABLE = "Festivals"
CLIENTS_TABLE = "Client Book"
SETTINGS_TABLE = "Settings"

POSTS_COLLECTION = "posts"

MAPPING_STORE_FILE = "mapping-store.json"
SYNC_STATUS_FILE = "sync-status.json"
