"""
Configuracion de logging con loguru.

Un sink a stderr con colores y un sink a archivo con rotacion.
"""
import sys
from typing import Optional

from loguru import logger


def configure_logging(level: str = "INFO", log_file: Optional[str] = None, verbose: bool = False) -> None:
    """
    Reemplaza el sink por defecto de loguru.

    Args:
        level: nivel minimo (INFO por defecto)
        log_file: ruta del archivo de log; None o vacio desactiva el sink a archivo
        verbose: fuerza DEBUG en stderr
    """
    effective_level = "DEBUG" if verbose else level.upper()

    logger.remove()
    logger.add(
        sys.stderr,
        level=effective_level,
        colorize=True,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )
    if log_file:
        logger.add(
            log_file,
            rotation="10 MB",
            retention="10 days",
            level=effective_level,
            encoding="utf-8",
        )
