"""
Interfaz para subir assets al mirror / CDN.

Este contrato existe para:
- Mantener Clean Architecture: el deduplicador no depende del cliente HTTP del CDN.
- Facilitar tests unitarios contando subidas con un fake en memoria.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class MirrorUploadResult:
    """
    Resultado de una subida.

    mirror_url es estable para un mismo target_name.
    """

    mirror_url: str
    format: str
    bytes: int


class AssetMirror(Protocol):
    """
    Sube un asset (por URL de origen) bajo un nombre destino determinista.

    Implementaciones:
    - Cliente REST del CDN (upload firmado).
    - Fake para tests.
    """

    def upload(
        self,
        *,
        source_url: str,
        target_name: str,
        overwrite: bool = True,
        invalidate: bool = True,
    ) -> MirrorUploadResult:
        """
        Sube el asset y retorna la URL del mirror.

        Reglas:
        - Si la subida falla debe lanzar UploadFailure; el deduplicador
          cae a la URL de origen y no escribe la entrada en el ledger.
        """
        ...
