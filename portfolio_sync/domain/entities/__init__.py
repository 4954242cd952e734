"""
Entidades del dominio.
"""
from portfolio_sync.domain.entities.records import (
    Attachment,
    ChangeSet,
    Snapshot,
    SourceRecord,
    TableDefinition,
)
from portfolio_sync.domain.entities.assets import MappingStore, MirroredAsset, compute_asset_identity
from portfolio_sync.domain.entities.variant import PortfolioVariant
from portfolio_sync.domain.entities.dataset import (
    Dataset,
    NormalizedPost,
    NormalizedProject,
    PortfolioSettings,
)

__all__ = [
    "Attachment",
    "ChangeSet",
    "Snapshot",
    "SourceRecord",
    "TableDefinition",
    "MappingStore",
    "MirroredAsset",
    "compute_asset_identity",
    "PortfolioVariant",
    "Dataset",
    "NormalizedPost",
    "NormalizedProject",
    "PortfolioSettings",
]
