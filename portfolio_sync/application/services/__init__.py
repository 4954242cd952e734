"""
Servicios de aplicacion.

Piezas puras (o con colaboradores inyectados) del pipeline, testeables
sin red: deteccion de cambios, merge, deduplicacion de assets, variantes,
artefactos derivados y fallback a cache.
"""
from portfolio_sync.application.services.change_detector import detect
from portfolio_sync.application.services.record_merger import merge, reconcile_snapshot
from portfolio_sync.application.services.asset_deduplicator import AssetDeduplicator, DedupStats
from portfolio_sync.application.services.variant_builder import build_variant, select_records
from portfolio_sync.application.services.output_builders import (
    build_robots,
    build_share_meta,
    build_sitemap,
)
from portfolio_sync.application.services.fallback_handler import RateLimitFallbackHandler

__all__ = [
    # Deteccion y merge
    "detect",
    "merge",
    "reconcile_snapshot",
    # Assets
    "AssetDeduplicator",
    "DedupStats",
    # Variantes y salidas
    "build_variant",
    "select_records",
    "build_robots",
    "build_share_meta",
    "build_sitemap",
    # Fallback
    "RateLimitFallbackHandler",
]
