"""
Utilidades para manejo de fechas y horas.

Los timestamps del upstream se guardan como strings crudos y se comparan por
igualdad estricta; estas utilidades solo se usan para los sellos propios del
pipeline (generatedAt, capturedAt, lastAttemptedAt).
"""
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Retorna la hora actual en UTC, como datetime aware."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normaliza datetime a UTC (aware).

    Un datetime naive se asume ya expresado en UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def isoformat_z(dt: datetime) -> str:
    """
    Serializa datetime a ISO8601 con 'Z' y milisegundos.

    Ejemplo: 2025-01-10T09:30:00.000Z
    """
    dt_utc = ensure_utc(dt)
    return dt_utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt_utc.microsecond // 1000:03d}Z"
