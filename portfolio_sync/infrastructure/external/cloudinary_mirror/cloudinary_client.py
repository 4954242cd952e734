"""
Cliente mínimo del Upload API de Cloudinary (sin SDK).

Sube por URL de origen (Cloudinary descarga el archivo), con public_id
determinista, overwrite e invalidate. La firma es sha1 de los parámetros
ordenados + api_secret, tal como la documenta Cloudinary.
"""

from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests
from loguru import logger

from portfolio_sync.application.interfaces.asset_mirror import MirrorUploadResult
from portfolio_sync.shared.exceptions.sync import UploadFailure

# Parámetros que Cloudinary excluye de la firma
_UNSIGNED_PARAMS = {"file", "api_key", "resource_type", "cloud_name"}


@dataclass(frozen=True)
class CloudinaryCredentials:
    cloud_name: str
    api_key: str
    api_secret: str


def sign_params(params: Dict[str, Any], api_secret: str) -> str:
    """
    Firma de Cloudinary: "k1=v1&k2=v2" ordenado por clave + secret, sha1 hex.

    Los booleanos se serializan como 'true'/'false'.
    """
    items = []
    for key in sorted(params):
        if key in _UNSIGNED_PARAMS:
            continue
        value = params[key]
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        items.append(f"{key}={value}")
    to_sign = "&".join(items) + api_secret
    return hashlib.sha1(to_sign.encode("utf-8")).hexdigest()


class CloudinaryMirrorClient:
    """
    Implementación de AssetMirror sobre el Upload API.

    Timeouts, errores de conexión y 5xx se reintentan con backoff acotado
    (respeta Retry-After). Agotados los reintentos, o ante cualquier otro
    error, se levanta UploadFailure: una subida fallida nunca aborta la corrida.
    """

    def __init__(
        self,
        credentials: CloudinaryCredentials,
        *,
        session: Optional[requests.Session] = None,
        base_url: str = "https://api.cloudinary.com/v1_1",
        timeout_s: float = 30,
        max_retries: int = 3,
        min_backoff_s: float = 0.8,
        max_backoff_s: float = 20.0,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._creds = credentials
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._max_retries = max_retries
        self._min_backoff_s = min_backoff_s
        self._max_backoff_s = max_backoff_s
        self._session = session or requests.Session()
        self._clock = clock
        self._sleep = sleep
        self.upload_count = 0

    @property
    def upload_url(self) -> str:
        # resource_type "auto": los adjuntos pueden ser video o documentos, no solo imágenes
        return f"{self._base_url}/{self._creds.cloud_name}/auto/upload"

    def upload(
        self,
        *,
        source_url: str,
        target_name: str,
        overwrite: bool = True,
        invalidate: bool = True,
    ) -> MirrorUploadResult:
        params: Dict[str, Any] = {
            "public_id": target_name,
            "overwrite": overwrite,
            "invalidate": invalidate,
            "timestamp": int(self._clock()),
        }
        signature = sign_params(params, self._creds.api_secret)
        data = {
            **{k: ("true" if v is True else "false" if v is False else v) for k, v in params.items()},
            "file": source_url,
            "api_key": self._creds.api_key,
            "signature": signature,
        }

        self.upload_count += 1
        resp = self._post(data, target_name)

        if not 200 <= resp.status_code < 300:
            raise UploadFailure(
                f"Cloudinary respondió {resp.status_code}: {resp.text[:300]}",
                target_name=target_name,
            )

        try:
            body = resp.json()
        except ValueError as e:
            raise UploadFailure("respuesta de Cloudinary no es JSON", target_name=target_name) from e

        mirror_url = body.get("secure_url") or body.get("url")
        if not mirror_url:
            raise UploadFailure("respuesta de Cloudinary sin secure_url", target_name=target_name)

        logger.debug(f"Cloudinary: {target_name} -> {mirror_url}")
        return MirrorUploadResult(
            mirror_url=str(mirror_url),
            format=str(body.get("format") or ""),
            bytes=int(body.get("bytes") or 0),
        )

    def _post(self, data: Dict[str, Any], target_name: str) -> requests.Response:
        """
        POST con backoff para errores transitorios.

        Devuelve la última respuesta (2xx, 4xx o el 5xx del último intento);
        los errores de red agotados se traducen a UploadFailure.
        """
        for attempt in range(self._max_retries + 1):
            try:
                resp = self._session.post(self.upload_url, data=data, timeout=self._timeout_s)
            except (requests.Timeout, requests.ConnectionError) as e:
                if attempt >= self._max_retries:
                    raise UploadFailure(
                        f"error de red subiendo a Cloudinary tras {attempt} reintentos: {e}",
                        target_name=target_name,
                    ) from e
                logger.debug(f"Cloudinary {target_name}: error de red ({e}), reintento {attempt + 1}")
                self._sleep(self._backoff(attempt, None))
                continue
            except requests.RequestException as e:
                raise UploadFailure(f"error de red subiendo a Cloudinary: {e}", target_name=target_name) from e

            if 500 <= resp.status_code < 600 and attempt < self._max_retries:
                logger.debug(f"Cloudinary {target_name}: {resp.status_code}, reintento {attempt + 1}")
                self._sleep(self._backoff(attempt, resp.headers.get("Retry-After")))
                continue
            return resp

        raise UploadFailure("Cloudinary: reintentos agotados", target_name=target_name)

    def _backoff(self, attempt: int, retry_after: Optional[str]) -> float:
        if retry_after:
            try:
                return min(self._max_backoff_s, float(retry_after))
            except ValueError:
                pass
        base = min(self._max_backoff_s, self._min_backoff_s * (2**attempt))
        return base + (0.15 * base)
