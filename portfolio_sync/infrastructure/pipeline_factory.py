"""
Constructor “oficial” del pipeline a partir de Settings.

Conecta las implementaciones concretas (Airtable, Cloudinary, repositorios
JSON, writer de salidas) con el caso de uso. Validación de configuración
antes de cualquier llamada de red.
"""

from __future__ import annotations

from typing import Optional

import requests
from loguru import logger

from portfolio_sync.application.use_cases.sync_use_cases import PortfolioSyncUseCase
from portfolio_sync.core.config import Settings
from portfolio_sync.infrastructure.external.airtable_sync.airtable_client import (
    AirtableClient,
    AirtableCredentials,
)
from portfolio_sync.infrastructure.external.airtable_sync.record_fetcher import SelectiveRecordFetcher
from portfolio_sync.infrastructure.external.airtable_sync.snapshot_fetcher import SnapshotFetcher
from portfolio_sync.infrastructure.external.cloudinary_mirror.cloudinary_client import (
    CloudinaryCredentials,
    CloudinaryMirrorClient,
)
from portfolio_sync.infrastructure.output.output_writer import OutputWriter
from portfolio_sync.infrastructure.repositories.json_state_repository import (
    JsonDatasetRepository,
    JsonMappingStoreRepository,
    JsonRecordCacheRepository,
    JsonSnapshotRepository,
    JsonSyncStatusRepository,
)


def build_from_settings(
    settings: Settings,
    *,
    session: Optional[requests.Session] = None,
) -> PortfolioSyncUseCase:
    """
    Arma el caso de uso.

    Raises:
        ConfigurationError: sin variantes, duplicados o JSON inválido
    """
    variants = settings.validate_for_sync()
    tables = settings.load_tables()
    settings.ensure_directories()
    state_dir = settings.effective_state_dir

    snapshot_source = None
    record_source = None
    if settings.has_upstream_credentials:
        client = AirtableClient(
            AirtableCredentials(token=settings.AIRTABLE_TOKEN, base_id=settings.AIRTABLE_BASE_ID),
            session=session,
            base_url=settings.AIRTABLE_API_URL,
            timeout_s=settings.HTTP_TIMEOUT_S,
            max_retries=settings.HTTP_MAX_RETRIES,
        )
        snapshot_source = SnapshotFetcher(
            client,
            last_modified_field=settings.AIRTABLE_LAST_MOD_FIELD,
            page_size=settings.AIRTABLE_PAGE_SIZE,
        )
        record_source = SelectiveRecordFetcher(
            client,
            last_modified_field=settings.AIRTABLE_LAST_MOD_FIELD,
            batch_size=settings.AIRTABLE_FETCH_BATCH_SIZE,
            page_size=settings.AIRTABLE_PAGE_SIZE,
        )
    else:
        logger.warning("CONFIG: AIRTABLE_TOKEN / AIRTABLE_BASE_ID no configurados; solo se podrá servir el caché")

    mirror = None
    if settings.mirror_enabled:
        mirror = CloudinaryMirrorClient(
            CloudinaryCredentials(
                cloud_name=settings.CLOUDINARY_CLOUD_NAME,
                api_key=settings.CLOUDINARY_API_KEY,
                api_secret=settings.CLOUDINARY_API_SECRET,
            ),
            session=session,
            timeout_s=settings.HTTP_TIMEOUT_S,
            max_retries=settings.HTTP_MAX_RETRIES,
        )
    elif settings.USE_CLOUDINARY:
        logger.warning("CONFIG: USE_CLOUDINARY activo pero faltan credenciales; se usan URLs de origen")

    return PortfolioSyncUseCase(
        tables=tables,
        variants=variants,
        snapshot_source=snapshot_source,
        record_source=record_source,
        snapshot_repository=JsonSnapshotRepository(state_dir),
        record_cache_repository=JsonRecordCacheRepository(state_dir),
        mapping_store_repository=JsonMappingStoreRepository(state_dir),
        dataset_repository=JsonDatasetRepository(settings.OUTPUT_DIR),
        status_repository=JsonSyncStatusRepository(state_dir),
        output_writer=OutputWriter(settings.OUTPUT_DIR),
        mirror=mirror,
    )
