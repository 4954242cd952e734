"""
Entidades de dominio para la deduplicación de assets.

INVARIANTE PRINCIPAL: la identidad de un asset se calcula SOLO con su
metadata intrínseca (id de origen, filename, tamaño en bytes, tipo MIME).
Nunca con la URL: el upstream emite URLs firmadas que rotan aunque el
archivo sea el mismo. Si la identidad dependiera de la URL, cada sync
volvería a subir todos los assets al mirror.
"""
from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from portfolio_sync.domain.entities.records import Attachment

AssetIdentity = str
Slot = Tuple[str, int]


def compute_asset_identity(attachment: Attachment) -> AssetIdentity:
    """
    Hash sha256 estable de (id, filename, size, type).

    La URL del adjunto NO participa del hash.
    """
    payload = json.dumps(
        [attachment.id, attachment.filename, int(attachment.size), attachment.type],
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class MirroredAsset:
    """
    Asset ya subido al mirror.

    Inmutable salvo origin_url, que puede refrescarse sin re-subir.
    table/field/index identifican el slot; target_name es el public id en el CDN.
    """

    identity: AssetIdentity
    origin_url: str
    mirror_url: str
    format: str
    bytes: int
    table: str
    field: str
    index: int
    target_name: str
    source_attachment_id: str = ""

    @property
    def slot(self) -> Slot:
        return (self.field, self.index)

    def with_origin_url(self, origin_url: str) -> "MirroredAsset":
        return replace(self, origin_url=origin_url)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity,
            "originUrl": self.origin_url,
            "mirrorUrl": self.mirror_url,
            "format": self.format,
            "bytes": self.bytes,
            "table": self.table,
            "field": self.field,
            "index": self.index,
            "targetName": self.target_name,
            "sourceAttachmentId": self.source_attachment_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MirroredAsset":
        return cls(
            identity=data["identity"],
            origin_url=data.get("originUrl") or "",
            mirror_url=data["mirrorUrl"],
            format=data.get("format") or "",
            bytes=int(data.get("bytes") or 0),
            table=data.get("table") or "",
            field=data.get("field") or "",
            index=int(data.get("index") or 0),
            target_name=data.get("targetName") or "",
            source_attachment_id=data.get("sourceAttachmentId") or "",
        )


class MappingStore:
    """
    Ledger de deduplicación: recordId -> lista ordenada de MirroredAsset.

    Es un caché, no fuente de verdad: perderlo solo provoca re-subidas.
    `dirty` indica si hubo altas/cambios/bajas desde que se cargó.
    """

    def __init__(
        self,
        generated_at: str = "",
        by_source_record: Optional[Dict[str, List[MirroredAsset]]] = None,
    ) -> None:
        self.generated_at = generated_at
        self._by_record: Dict[str, List[MirroredAsset]] = {
            k: list(v) for k, v in (by_source_record or {}).items()
        }
        self.dirty = False

    def __len__(self) -> int:
        return sum(len(assets) for assets in self._by_record.values())

    def record_ids(self) -> Set[str]:
        return set(self._by_record)

    def assets_for(self, record_id: str) -> List[MirroredAsset]:
        return list(self._by_record.get(record_id, []))

    def find(self, record_id: str, field: str, index: int) -> Optional[MirroredAsset]:
        for asset in self._by_record.get(record_id, []):
            if asset.field == field and asset.index == index:
                return asset
        return None

    def mirror_url_for(self, record_id: str, field: str, index: int) -> Optional[str]:
        asset = self.find(record_id, field, index)
        return asset.mirror_url if asset else None

    def upsert(self, record_id: str, asset: MirroredAsset, field_order: Sequence[str] = ()) -> None:
        """
        Inserta o reemplaza el asset de un slot (field, index).

        La lista queda ordenada por posición del campo y luego por índice,
        así las referencias por índice ("imagen principal = 0") son estables.
        """
        assets = [a for a in self._by_record.get(record_id, []) if a.slot != asset.slot]
        assets.append(asset)
        order = {name: pos for pos, name in enumerate(field_order)}
        assets.sort(key=lambda a: (order.get(a.field, len(order)), a.field, a.index))
        self._by_record[record_id] = assets
        self.dirty = True

    def retain_slots(self, record_id: str, slots: Iterable[Slot]) -> int:
        """Descarta slots que ya no existen en el registro. Retorna cuántos se quitaron."""
        keep = set(slots)
        current = self._by_record.get(record_id)
        if not current:
            return 0
        kept = [a for a in current if a.slot in keep]
        removed = len(current) - len(kept)
        if removed:
            if kept:
                self._by_record[record_id] = kept
            else:
                del self._by_record[record_id]
            self.dirty = True
        return removed

    def remove_records(self, record_ids: Iterable[str]) -> int:
        removed = 0
        for record_id in record_ids:
            if self._by_record.pop(record_id, None) is not None:
                removed += 1
        if removed:
            self.dirty = True
        return removed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generatedAt": self.generated_at,
            "bySourceRecord": {
                record_id: [a.to_dict() for a in assets]
                for record_id, assets in sorted(self._by_record.items())
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MappingStore":
        by_record = {
            str(record_id): [MirroredAsset.from_dict(item) for item in items or []]
            for record_id, items in (data.get("bySourceRecord") or {}).items()
        }
        return cls(generated_at=str(data.get("generatedAt") or ""), by_source_record=by_record)
