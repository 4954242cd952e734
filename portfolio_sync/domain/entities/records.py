"""
Entidades de dominio para registros del store tabular upstream.

Los registros se mantienen como copia de solo lectura: cada sync los
reemplaza completos, nunca se parchean campo a campo.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from portfolio_sync.shared.exceptions.sync import RecordSerializationError
from portfolio_sync.shared.utils.text_utils import slugify


def extract_last_modified(raw: Dict[str, Any], last_modified_field: str) -> str:
    """
    Reloj de modificación del upstream tal como viene (string crudo).

    Si la tabla no tiene el campo configurado se usa createdTime; el valor
    nunca se parsea porque la comparación es por igualdad estricta.
    """
    fields = raw.get("fields") or {}
    value = fields.get(last_modified_field) if isinstance(fields, dict) else None
    if value is None or value == "":
        value = raw.get("createdTime") or ""
    return str(value)


@dataclass(frozen=True)
class Attachment:
    """Adjunto de un campo de tipo attachment. La URL rota; el resto es intrínseco."""

    id: str
    filename: str
    size: int
    type: str
    url: str

    @classmethod
    def from_api(cls, raw: Any) -> "Attachment":
        if not isinstance(raw, dict) or not raw.get("url"):
            raise ValueError("adjunto sin 'url'")
        size = raw.get("size") or 0
        try:
            size = int(size)
        except (TypeError, ValueError) as e:
            raise ValueError(f"tamaño de adjunto inválido: {size!r}") from e
        return cls(
            id=str(raw.get("id") or ""),
            filename=str(raw.get("filename") or ""),
            size=size,
            type=str(raw.get("type") or ""),
            url=str(raw["url"]),
        )


@dataclass(frozen=True)
class TableDefinition:
    """
    Tabla a sincronizar.

    attachment_fields es ordenado: define el orden de los slots de assets.
    """

    name: str
    attachment_fields: Tuple[str, ...] = ()
    sort_field: Optional[str] = None

    @property
    def slug(self) -> str:
        return slugify(self.name)


@dataclass(frozen=True)
class SourceRecord:
    """Copia de solo lectura de un registro upstream."""

    table: str
    id: str
    fields: Dict[str, Any]
    last_modified: str

    @classmethod
    def from_api(
        cls,
        table: TableDefinition,
        raw: Any,
        last_modified_field: str,
    ) -> "SourceRecord":
        """
        Construye un SourceRecord desde el payload de la API.

        Raises:
            RecordSerializationError: si el payload está malformado
        """
        if not isinstance(raw, dict):
            raise RecordSerializationError("Registro no es un objeto JSON", table=table.name)

        record_id = raw.get("id")
        if not record_id or not isinstance(record_id, str):
            raise RecordSerializationError("Registro sin 'id'", table=table.name)

        fields = raw.get("fields")
        if fields is None:
            fields = {}
        if not isinstance(fields, dict):
            raise RecordSerializationError(
                "El campo 'fields' no es un objeto", table=table.name, record_id=record_id
            )

        for attachment_field in table.attachment_fields:
            value = fields.get(attachment_field)
            if value is None:
                continue
            if not isinstance(value, list):
                raise RecordSerializationError(
                    f"El campo '{attachment_field}' no es una lista de adjuntos",
                    table=table.name,
                    record_id=record_id,
                )
            for item in value:
                try:
                    Attachment.from_api(item)
                except ValueError as e:
                    raise RecordSerializationError(
                        f"Adjunto inválido en '{attachment_field}': {e}",
                        table=table.name,
                        record_id=record_id,
                    ) from e

        return cls(
            table=table.name,
            id=record_id,
            fields=fields,
            last_modified=extract_last_modified(raw, last_modified_field),
        )

    def attachments(self, field_name: str) -> List[Attachment]:
        """
        Adjuntos de un campo, en el orden del upstream.

        Los ítems inválidos se omiten; los campos declarados como attachment
        ya se validaron en from_api.
        """
        value = self.fields.get(field_name) or []
        if not isinstance(value, list):
            return []
        attachments: List[Attachment] = []
        for item in value:
            try:
                attachments.append(Attachment.from_api(item))
            except ValueError:
                continue
        return attachments

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "fields": self.fields, "lastModified": self.last_modified}

    @classmethod
    def from_dict(cls, table: str, data: Dict[str, Any]) -> "SourceRecord":
        return cls(
            table=table,
            id=data["id"],
            fields=data.get("fields") or {},
            last_modified=str(data.get("lastModified") or ""),
        )


@dataclass(frozen=True)
class Snapshot:
    """
    Proyección (id -> lastModified) de una tabla.

    Nunca contiene payloads completos: es lo que la hace barata de traer.
    """

    table: str
    entries: Dict[str, str]
    captured_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "capturedAt": self.captured_at,
            "entries": dict(sorted(self.entries.items())),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Snapshot":
        return cls(
            table=data["table"],
            entries={str(k): str(v) for k, v in (data.get("entries") or {}).items()},
            captured_at=str(data.get("capturedAt") or ""),
        )


@dataclass(frozen=True)
class ChangeSet:
    """Clasificación efímera de ids entre dos snapshots. Nunca se persiste."""

    table: str
    added: FrozenSet[str] = field(default_factory=frozenset)
    changed: FrozenSet[str] = field(default_factory=frozenset)
    deleted: FrozenSet[str] = field(default_factory=frozenset)
    unchanged: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def to_fetch(self) -> FrozenSet[str]:
        return self.added | self.changed

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.changed or self.deleted)

    def summary(self) -> str:
        return (
            f"nuevos={len(self.added)}, cambiados={len(self.changed)}, "
            f"borrados={len(self.deleted)}, sin cambios={len(self.unchanged)}"
        )
