"""
CLI del pipeline de sincronización de portfolio.

Uso recomendado:
  - Ejecutar como job (cron/systemd timer) o en el build del sitio.
  - Un solo proceso por directorio de salida (no hay lock interno).

Códigos de salida:
  0  corrida OK (incluye modo degradado servido desde caché)
  1  FATAL (sin datos live ni caché) o error de configuración
  2  error de serialización al escribir una salida

Ejecución:
  portfolio-sync
  portfolio-sync --force-full --verbose
  python scripts/run_portfolio_sync.py --output-dir public
"""

from __future__ import annotations

import argparse
from typing import Optional, Sequence

import requests
from dotenv import load_dotenv
from loguru import logger

from portfolio_sync.core.config import Settings
from portfolio_sync.core.logging_config import configure_logging
from portfolio_sync.infrastructure.pipeline_factory import build_from_settings
from portfolio_sync.shared.exceptions.sync import (
    ConfigurationError,
    FatalSyncError,
    OutputSerializationError,
)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_SERIALIZATION = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="portfolio-sync",
        description="Sincroniza Airtable -> Cloudinary -> datasets por variante.",
    )
    parser.add_argument(
        "--force-full",
        action="store_true",
        help="Ignora la detección de cambios y trae todas las tablas completas.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Logging en DEBUG.")
    parser.add_argument("--output-dir", default=None, help="Directorio de salida (sobrescribe OUTPUT_DIR).")
    parser.add_argument("--state-dir", default=None, help="Directorio de estado (sobrescribe STATE_DIR).")
    return parser


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    settings: Optional[Settings] = None,
    session: Optional[requests.Session] = None,
) -> int:
    args = _build_parser().parse_args(argv)

    if settings is None:
        load_dotenv(override=False)
        settings = Settings()

    overrides = {}
    if args.output_dir:
        overrides["OUTPUT_DIR"] = args.output_dir
    if args.state_dir:
        overrides["STATE_DIR"] = args.state_dir
    if overrides:
        settings = settings.model_copy(update=overrides)

    verbose = args.verbose or settings.VERBOSE
    configure_logging(settings.LOG_LEVEL, settings.LOG_FILE or None, verbose=verbose)

    try:
        use_case = build_from_settings(settings, session=session)
        result = use_case.execute(force_full=args.force_full or settings.FORCE_FULL_SYNC)
    except ConfigurationError as e:
        logger.error(f"Configuración inválida: {e.message}")
        return EXIT_FATAL
    except FatalSyncError as e:
        logger.error(f"Sync abortado: {e.message}")
        return EXIT_FATAL
    except OutputSerializationError as e:
        logger.error(f"No se pudo escribir una salida: {e.message}")
        return EXIT_SERIALIZATION

    logger.info(
        f"Resultado: state={result.state.value}, mode={result.mode.value}, "
        f"variantes={result.variants}, archivos={len(result.written)}"
    )
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
