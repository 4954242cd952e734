"""
Taxonomía de errores del pipeline de sincronización.

Política de propagación:
- Todo lo que ocurre por debajo del nivel de tabla se recupera localmente
  (registro malformado, upload fallido): se loguea y se sigue.
- Los errores del upstream abortan la corrida live y disparan el fallback a caché.
- Solo la ausencia total de datos utilizables (FatalSyncError) o un error de
  serialización de salida terminan con exit code != 0.
"""
from typing import Any, Dict, Optional

from portfolio_sync.shared.exceptions.base import AppException


class SyncException(AppException):
    """Excepción base para errores del pipeline."""

    def __init__(
        self,
        message: str,
        error_code: str = "SYNC_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details,
        )


class ConfigurationError(SyncException):
    """Configuración inválida (sin variantes, credenciales faltantes). Se detecta antes de cualquier llamada de red."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            details={"field": field} if field else None,
        )


class UpstreamError(SyncException):
    """Error no recuperable respondido por el store tabular upstream."""

    def __init__(
        self,
        message: str,
        error_code: str = "UPSTREAM_ERROR",
        status_code: int = 502,
        table: Optional[str] = None,
        http_status: Optional[int] = None,
    ):
        details: Dict[str, Any] = {}
        if table:
            details["table"] = table
        if http_status is not None:
            details["http_status"] = http_status
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status_code,
            details=details,
        )
        self.table = table
        self.http_status = http_status


class TransientNetworkError(UpstreamError):
    """Timeout, conexión reseteada o 5xx persistente tras agotar los reintentos."""

    def __init__(self, message: str, table: Optional[str] = None, http_status: Optional[int] = None):
        super().__init__(
            message=message,
            error_code="TRANSIENT_NETWORK_ERROR",
            status_code=503,
            table=table,
            http_status=http_status,
        )


class QuotaExceededError(UpstreamError):
    """El upstream rechazó la llamada por cuota / rate limit. Nunca se reintenta."""

    def __init__(self, message: str, table: Optional[str] = None, http_status: Optional[int] = 429):
        super().__init__(
            message=message,
            error_code="QUOTA_EXCEEDED",
            status_code=429,
            table=table,
            http_status=http_status,
        )


class RecordSerializationError(SyncException):
    """Registro upstream malformado. Se salta y el resto de la tabla continúa."""

    def __init__(self, message: str, table: str, record_id: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="RECORD_SERIALIZATION_ERROR",
            details={"table": table, "record_id": record_id},
        )
        self.table = table
        self.record_id = record_id


class UploadFailure(SyncException):
    """Falló la subida de un asset individual al mirror."""

    def __init__(self, message: str, target_name: str):
        super().__init__(
            message=message,
            error_code="UPLOAD_FAILURE",
            details={"target_name": target_name},
        )
        self.target_name = target_name


class OutputSerializationError(SyncException):
    """No se pudo serializar o escribir un artefacto de salida."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="OUTPUT_SERIALIZATION_ERROR",
            details={"path": path} if path else None,
        )


class FatalSyncError(SyncException):
    """Sin datos live ni caché utilizable: estado FATAL."""

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="SYNC_FATAL",
            status_code=503,
            details={"reason": reason} if reason else None,
        )
