"""
Manejadores de eventos de inicio y cierre de la aplicacion.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI
from loguru import logger

from portfolio_sync.core.config import settings
from portfolio_sync.core.logging_config import configure_logging
from portfolio_sync.shared.exceptions.sync import ConfigurationError


def startup_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de inicio de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de inicio
    """
    async def startup() -> None:
        configure_logging(settings.LOG_LEVEL, settings.LOG_FILE or None, verbose=settings.VERBOSE)
        logger.info(f"Iniciando {settings.APP_NAME} v{settings.APP_VERSION}")

        _validate_config()
        settings.ensure_directories()
        logger.info(f"Salidas en '{settings.OUTPUT_DIR}', estado en '{settings.effective_state_dir}'")

        logger.success("Aplicacion iniciada correctamente")
        _print_available_urls()

    return startup


def _validate_config() -> None:
    """
    Valida la configuracion critica.

    La configuracion invalida no impide levantar la API: el endpoint de sync
    la reporta como error JSON en cada intento.
    """
    warnings = []

    try:
        variants = settings.validate_for_sync()
        logger.info(f"Variantes configuradas: {[v.id for v in variants]}")
    except ConfigurationError as e:
        warnings.append(e.message)

    if not settings.has_upstream_credentials:
        warnings.append("AIRTABLE_TOKEN / AIRTABLE_BASE_ID no configurados - solo se servira el cache")
    if settings.USE_CLOUDINARY and not settings.mirror_enabled:
        warnings.append("USE_CLOUDINARY activo sin credenciales completas - se usaran URLs de origen")

    for warning in warnings:
        logger.warning(f"CONFIG: {warning}")


def _print_available_urls() -> None:
    """Imprime las URLs disponibles de la aplicacion."""
    access_host = "localhost" if settings.HOST == "0.0.0.0" else settings.HOST
    base_url = f"http://{access_host}:{settings.PORT}"

    logger.opt(colors=True).info("<bold><green>" + "=" * 80 + "</green></bold>")
    logger.opt(colors=True).info("<bold><green>URLS DISPONIBLES:</green></bold>")
    logger.opt(colors=True).info(f"<cyan>  Swagger UI:  {base_url}/docs</cyan>")
    logger.opt(colors=True).info(f"<cyan>  Sync:        POST {base_url}/api/v1/sync</cyan>")
    logger.opt(colors=True).info(f"<cyan>  Estado:      {base_url}/api/v1/sync/status</cyan>")
    logger.opt(colors=True).info(f"<cyan>  Datasets:    {base_url}/api/v1/data/{{variant_id}}</cyan>")
    logger.opt(colors=True).info(f"<cyan>  Health:      {base_url}/health</cyan>")
    logger.opt(colors=True).info("<bold><green>" + "=" * 80 + "</green></bold>")


def shutdown_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de cierre de la aplicacion.

    No hay conexiones persistentes que cerrar: cada corrida abre y cierra
    su propia sesion HTTP.
    """
    async def shutdown() -> None:
        logger.info("Cerrando aplicacion...")
        logger.success("Aplicacion cerrada correctamente")

    return shutdown


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Ciclo de vida de la aplicacion: inicio antes de servir, cierre al terminar."""
    await startup_handler(app)()
    yield
    await shutdown_handler(app)()
