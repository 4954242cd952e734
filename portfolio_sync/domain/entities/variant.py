"""
Definición de una variante de portfolio.

Una variante es configuración, no datos: decide qué registros entran y en
qué namespace se escriben sus artefactos.
"""
from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from portfolio_sync.domain.entities.records import SourceRecord

HIDDEN_STATUS = "Hidden"
ROLE_FIELD = "Role"

InclusionPredicate = Callable[[SourceRecord], bool]


@dataclass(frozen=True)
class PortfolioVariant:
    """
    Variante de salida.

    - display_status_field: campo de visibilidad que usa esta variante
    - settings_portfolio_id: valor de 'Portfolio ID' de su fila en Settings
    - allowed_roles: si no es None, reemplaza los roles de la fila Settings
    - base_url: si no es None, reemplaza el 'Domain' de la fila Settings
    """

    id: str
    output_namespace: str
    display_status_field: str = "Display Status"
    settings_portfolio_id: str = ""
    allowed_roles: Optional[Tuple[str, ...]] = None
    base_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PortfolioVariant":
        variant_id = str(data["id"]).strip()
        roles = data.get("allowed_roles")
        return cls(
            id=variant_id,
            output_namespace=str(data.get("output_namespace") or variant_id),
            display_status_field=str(data.get("display_status_field") or "Display Status"),
            settings_portfolio_id=str(data.get("settings_portfolio_id") or variant_id),
            allowed_roles=tuple(roles) if roles is not None else None,
            base_url=data.get("base_url") or None,
        )

    @property
    def fingerprint(self) -> str:
        """sha256 de la definición completa; si cambia, las salidas de la variante están viejas."""
        payload = json.dumps(asdict(self), sort_keys=True)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def display_status(self, record: SourceRecord) -> str:
        value = record.fields.get(self.display_status_field) or ""
        return str(value)

    def inclusion_predicate(self, allowed_roles: Sequence[str]) -> InclusionPredicate:
        """
        Predicado de inclusión de proyectos para esta variante.

        Reglas:
        - el campo de visibilidad debe tener valor y no ser 'Hidden'
        - si hay roles permitidos, el campo Role debe intersectarlos
          (un proyecto sin Role queda fuera)
        """
        roles = frozenset(allowed_roles)

        def predicate(record: SourceRecord) -> bool:
            status = self.display_status(record)
            if not status or status == HIDDEN_STATUS:
                return False
            if not roles:
                return True
            return bool(roles.intersection(record_roles(record)))

        return predicate


def record_roles(record: SourceRecord) -> Tuple[str, ...]:
    """El campo Role puede venir como string o como lista."""
    value = record.fields.get(ROLE_FIELD)
    if not value:
        return ()
    if isinstance(value, list):
        return tuple(str(v) for v in value)
    return (str(value),)
