"""
Escritura atómica de archivos: temporal en el mismo directorio + os.replace.

Un crash a mitad de escritura nunca deja un artefacto a medio escribir
visible para los consumidores.
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

from loguru import logger

from portfolio_sync.shared.exceptions.sync import OutputSerializationError

PathLike = Union[str, Path]


def dump_json(data: Any) -> str:
    """Serialización canónica: indentada, UTF-8 sin escapar, newline final."""
    try:
        return json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    except (TypeError, ValueError) as e:
        raise OutputSerializationError(f"No se pudo serializar a JSON: {e}") from e


def atomic_write_text(path: PathLike, text: str) -> Path:
    """
    Escribe `text` en `path` de forma atómica.

    Raises:
        OutputSerializationError: si la escritura o el rename fallan
    """
    target = Path(path)
    tmp_name: Optional[str] = None
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, target)
        tmp_name = None
    except OSError as e:
        raise OutputSerializationError(f"No se pudo escribir {target}: {e}", path=str(target)) from e
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
    return target


def atomic_write_json(path: PathLike, data: Any) -> Path:
    try:
        text = dump_json(data)
    except OutputSerializationError as e:
        raise OutputSerializationError(e.message, path=str(path)) from e
    return atomic_write_text(path, text)


def read_json(path: PathLike) -> Optional[Any]:
    """
    Lee un JSON de estado. None si no existe o está corrupto (se loguea):
    los archivos de estado son cachés regenerables.
    """
    source = Path(path)
    if not source.exists():
        return None
    try:
        with source.open("r", encoding="utf-8") as fh:
            return json.load(fh)
    except (OSError, ValueError) as e:
        logger.warning(f"No se pudo leer {source}: {e}; se ignora")
        return None
