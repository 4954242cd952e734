"""
Cliente mínimo de Airtable REST API (sin SDKs externos).

Requisitos cubiertos:
- requests
- paginación por offset
- proyección de campos (fields[]) y filtro por conjunto de ids (filterByFormula)
- backoff acotado para errores transitorios (timeouts, conexión, 5xx)
- cuota / rate limit (429) clasificado como QuotaExceededError, sin reintentos
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Collection, Iterator, Optional
from urllib.parse import quote

import requests
from loguru import logger

from portfolio_sync.shared.exceptions.sync import (
    QuotaExceededError,
    TransientNetworkError,
    UpstreamError,
)


@dataclass(frozen=True)
class AirtableCredentials:
    token: str
    base_id: str


def build_record_id_formula(record_ids: Collection[str]) -> str:
    """
    Fórmula Airtable que selecciona exactamente esos ids:

        OR(RECORD_ID()='rec1',RECORD_ID()='rec2')

    Los ids se ordenan para que la query sea determinista.
    """
    conditions = ",".join(f"RECORD_ID()='{rid}'" for rid in sorted(record_ids))
    return f"OR({conditions})"


def _is_quota_error(status_code: int, payload: Any) -> bool:
    """429, o un error tipado como LIMIT/QUOTA en el cuerpo (p.ej. límite de billing)."""
    if status_code == 429:
        return True
    if not isinstance(payload, dict):
        return False
    error = payload.get("error")
    error_type = error.get("type") if isinstance(error, dict) else error
    if not isinstance(error_type, str):
        return False
    upper = error_type.upper()
    return "LIMIT" in upper or "QUOTA" in upper


class AirtableClient:
    """
    Cliente HTTP de Airtable. Expone un generator de registros crudos.

    Importante:
    - No construye entidades de dominio: eso lo hacen los fetchers.
    - `request_count` cuenta requests HTTP exitosos (una página = un request).
    """

    def __init__(
        self,
        credentials: AirtableCredentials,
        *,
        session: Optional[requests.Session] = None,
        base_url: str = "https://api.airtable.com/v0",
        timeout_s: float = 30,
        max_retries: int = 4,
        min_backoff_s: float = 0.8,
        max_backoff_s: float = 20.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._creds = credentials
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._max_retries = max_retries
        self._min_backoff_s = min_backoff_s
        self._max_backoff_s = max_backoff_s
        self._session = session or requests.Session()
        self._sleep = sleep
        self.request_count = 0

    def table_url(self, table_name: str) -> str:
        return f"{self._base_url}/{self._creds.base_id}/{quote(table_name, safe='')}"

    def iter_records(
        self,
        *,
        table_name: str,
        fields: Optional[list[str]] = None,
        filter_formula: Optional[str] = None,
        sort_field: Optional[str] = None,
        page_size: int = 100,
    ) -> Iterator[dict[str, Any]]:
        """
        Itera los registros crudos de una tabla, página por página.

        - fields: proyección (fields[]); None trae todos los campos
        - filter_formula: filterByFormula
        - sort_field: orden descendente por ese campo
        """
        url = self.table_url(table_name)
        offset: Optional[str] = None

        while True:
            query: list[tuple[str, Any]] = [("pageSize", page_size)]
            if filter_formula:
                query.append(("filterByFormula", filter_formula))
            if sort_field:
                # Serialización manual para evitar "sort=field&sort=direction"
                query.append(("sort[0][field]", sort_field))
                query.append(("sort[0][direction]", "desc"))
            if fields is not None:
                for f in fields:
                    query.append(("fields[]", f))
            if offset:
                query.append(("offset", offset))

            payload = self._request_json("GET", url, query=query, table_name=table_name)
            for rec in payload.get("records") or []:
                yield rec

            offset = payload.get("offset")
            if not offset:
                break

    def _request_json(
        self,
        method: str,
        url: str,
        *,
        query: list[tuple[str, Any]],
        table_name: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Request HTTP con backoff para errores transitorios.

        Estrategia:
        - 2xx: retorna JSON.
        - 429 o error LIMIT/QUOTA: QuotaExceededError inmediato (no se reintenta).
        - timeout / conexión / 5xx: exponencial acotado, respeta Retry-After;
          agotados los reintentos -> TransientNetworkError.
        - otro 4xx: UpstreamError inmediato (config/auth mal).
        """
        headers = {
            "Authorization": f"Bearer {self._creds.token}",
            "Content-Type": "application/json",
        }

        for attempt in range(self._max_retries + 1):
            try:
                resp = self._session.request(
                    method=method,
                    url=url,
                    params=query,
                    headers=headers,
                    timeout=self._timeout_s,
                )
            except (requests.Timeout, requests.ConnectionError) as e:
                if attempt >= self._max_retries:
                    raise TransientNetworkError(
                        f"Airtable sin respuesta tras {attempt} reintentos: {e}",
                        table=table_name,
                    ) from e
                logger.debug(f"Airtable {table_name}: error de red ({e}), reintento {attempt + 1}")
                self._sleep(self._backoff(attempt, None))
                continue

            if 200 <= resp.status_code < 300:
                self.request_count += 1
                payload = self._safe_json(resp)
                if not isinstance(payload, dict):
                    raise UpstreamError(
                        f"Airtable respondió {resp.status_code} con un cuerpo no JSON",
                        table=table_name,
                        http_status=resp.status_code,
                    )
                return payload

            payload = self._safe_json(resp)
            if _is_quota_error(resp.status_code, payload):
                raise QuotaExceededError(
                    f"Airtable rechazó por cuota ({resp.status_code}): {resp.text[:300]}",
                    table=table_name,
                    http_status=resp.status_code,
                )

            # Errores recuperables
            if 500 <= resp.status_code < 600:
                if attempt >= self._max_retries:
                    raise TransientNetworkError(
                        f"Airtable error {resp.status_code} tras {attempt} reintentos: {resp.text[:300]}",
                        table=table_name,
                        http_status=resp.status_code,
                    )
                retry_after = resp.headers.get("Retry-After")
                logger.debug(f"Airtable {table_name}: {resp.status_code}, reintento {attempt + 1}")
                self._sleep(self._backoff(attempt, retry_after))
                continue

            # Errores no recuperables
            raise UpstreamError(
                f"Airtable request falló {resp.status_code}: {resp.text[:300]}",
                table=table_name,
                http_status=resp.status_code,
            )

        raise TransientNetworkError("Airtable: reintentos agotados", table=table_name)

    def _backoff(self, attempt: int, retry_after: Optional[str]) -> float:
        if retry_after:
            try:
                return min(self._max_backoff_s, float(retry_after))
            except ValueError:
                pass
        # Exponencial simple + jitter proporcional
        base = min(self._max_backoff_s, self._min_backoff_s * (2**attempt))
        return base + (0.15 * base)

    @staticmethod
    def _safe_json(resp: requests.Response) -> Any:
        try:
            return resp.json()
        except ValueError:
            return None
