"""
Configuracion central de la aplicacion.
Gestiona variables de entorno y configuraciones globales.
Las variantes y tablas a sincronizar se pueden sobreescribir con listas JSON
(PORTFOLIO_VARIANTS, SYNC_TABLES); vacias usan las definiciones por defecto.
"""
import json
from pathlib import Path
from typing import List

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings

from portfolio_sync.domain.entities.records import TableDefinition
from portfolio_sync.domain.entities.variant import PortfolioVariant
from portfolio_sync.shared.exceptions.sync import ConfigurationError

DEFAULT_VARIANTS = [
    {"id": "directing", "display_status_field": "Display Status"},
    {"id": "postproduction", "display_status_field": "Display Status (Post)"},
]

DEFAULT_TABLES = [
    {"name": "Projects", "attachment_fields": ["Gallery"], "sort_field": "Release Date"},
    {"name": "Journal", "attachment_fields": ["Cover Image"], "sort_field": "Date"},
    {"name": "Festivals"},
    {"name": "Client Book"},
    {
        "name": "Settings",
        "attachment_fields": [
            "Logo",
            "Favicon",
            "About Image",
            "Showreel Placeholder",
            "Default OG Image",
        ],
    },
]


class Settings(BaseSettings):
    """
    Clase de configuracion de la aplicacion.
    Lee variables de entorno y proporciona valores por defecto.

    - Credenciales Airtable (upstream) y Cloudinary (mirror)
    - Directorios de salida y de estado (snapshots, caché, mapping store)
    - Flags de corrida: FORCE_FULL_SYNC, VERBOSE
    """

    # Configuracion de la aplicacion
    APP_NAME: str = Field(default="Portfolio Sync")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)

    # Configuracion del servidor
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)

    # CORS (acepta lista JSON o "*" para todos los origenes)
    CORS_ORIGINS: str = Field(default="*")

    # Upstream (Airtable)
    AIRTABLE_TOKEN: str = Field(default="")
    AIRTABLE_BASE_ID: str = Field(default="")
    AIRTABLE_API_URL: str = Field(default="https://api.airtable.com/v0")
    AIRTABLE_LAST_MOD_FIELD: str = Field(default="Last Modified")
    AIRTABLE_PAGE_SIZE: int = Field(default=100, ge=1, le=100)
    AIRTABLE_FETCH_BATCH_SIZE: int = Field(default=50, ge=1, le=100)

    # Red: timeout explicito en toda llamada y reintentos acotados
    HTTP_TIMEOUT_S: float = Field(default=30, gt=0)
    HTTP_MAX_RETRIES: int = Field(default=4, ge=0)

    # Mirror (Cloudinary)
    USE_CLOUDINARY: bool = Field(default=False)
    CLOUDINARY_CLOUD_NAME: str = Field(default="")
    CLOUDINARY_API_KEY: str = Field(default="")
    CLOUDINARY_API_SECRET: str = Field(default="")

    # Salidas y estado
    OUTPUT_DIR: str = Field(default="public")
    STATE_DIR: str = Field(default="")

    # Variantes y tablas (JSON)
    PORTFOLIO_VARIANTS: str = Field(default="")
    SYNC_TABLES: str = Field(default="")

    # Flags de corrida
    FORCE_FULL_SYNC: bool = Field(default=False)
    VERBOSE: bool = Field(default=False)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/portfolio_sync.log")

    @computed_field
    @property
    def effective_state_dir(self) -> str:
        """Directorio de estado; por defecto el mismo de salida."""
        return self.STATE_DIR or self.OUTPUT_DIR

    @computed_field
    @property
    def has_upstream_credentials(self) -> bool:
        return bool(self.AIRTABLE_TOKEN and self.AIRTABLE_BASE_ID)

    @computed_field
    @property
    def mirror_enabled(self) -> bool:
        """El mirror solo se usa si esta habilitado y con credenciales completas."""
        return bool(
            self.USE_CLOUDINARY
            and self.CLOUDINARY_CLOUD_NAME
            and self.CLOUDINARY_API_KEY
            and self.CLOUDINARY_API_SECRET
        )

    def load_variants(self) -> List[PortfolioVariant]:
        """
        Parsea PORTFOLIO_VARIANTS. Vacio = variantes por defecto.

        Raises:
            ConfigurationError: JSON invalido o definiciones incompletas
        """
        raw = _parse_json_list(self.PORTFOLIO_VARIANTS, "PORTFOLIO_VARIANTS")
        items = DEFAULT_VARIANTS if raw is None else raw
        try:
            return [PortfolioVariant.from_dict(item) for item in items]
        except (KeyError, TypeError, AttributeError) as e:
            raise ConfigurationError(f"Definicion de variante invalida: {e}", field="PORTFOLIO_VARIANTS") from e

    def load_tables(self) -> List[TableDefinition]:
        """Parsea SYNC_TABLES. Vacio = tablas por defecto, en su orden fijo."""
        raw = _parse_json_list(self.SYNC_TABLES, "SYNC_TABLES")
        items = DEFAULT_TABLES if raw is None else raw
        try:
            return [
                TableDefinition(
                    name=str(item["name"]),
                    attachment_fields=tuple(item.get("attachment_fields") or ()),
                    sort_field=item.get("sort_field"),
                )
                for item in items
            ]
        except (KeyError, TypeError, AttributeError) as e:
            raise ConfigurationError(f"Definicion de tabla invalida: {e}", field="SYNC_TABLES") from e

    def validate_for_sync(self) -> List[PortfolioVariant]:
        """
        Valida la configuracion antes de cualquier llamada de red.

        Raises:
            ConfigurationError: sin variantes, o ids / namespaces duplicados
        """
        variants = self.load_variants()
        if not variants:
            raise ConfigurationError("No hay variantes definidas", field="PORTFOLIO_VARIANTS")

        ids = [v.id for v in variants]
        namespaces = [v.output_namespace for v in variants]
        if len(set(ids)) != len(ids):
            raise ConfigurationError(f"Ids de variante duplicados: {ids}", field="PORTFOLIO_VARIANTS")
        if len(set(namespaces)) != len(namespaces):
            raise ConfigurationError(f"Namespaces de salida duplicados: {namespaces}", field="PORTFOLIO_VARIANTS")
        if not self.load_tables():
            raise ConfigurationError("No hay tablas definidas", field="SYNC_TABLES")
        return variants

    def ensure_directories(self) -> None:
        Path(self.OUTPUT_DIR).mkdir(parents=True, exist_ok=True)
        Path(self.effective_state_dir).mkdir(parents=True, exist_ok=True)

    class Config:
        """Configuracion de Pydantic."""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignorar campos extra del .env


def _parse_json_list(raw: str, field: str):
    if not raw or not raw.strip():
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"{field} no es JSON valido: {e}", field=field) from e
    if not isinstance(value, list):
        raise ConfigurationError(f"{field} debe ser una lista JSON", field=field)
    return value


def get_cors_origins(cors_string: str) -> List[str]:
    """
    Parsea la configuracion de CORS.
    Acepta "*" para todos los origenes o una lista JSON.
    """
    if cors_string == "*":
        return ["*"]
    try:
        return json.loads(cors_string)
    except json.JSONDecodeError:
        # Si no es JSON valido, retornar como lista simple
        return [origin.strip() for origin in cors_string.split(",")]


# Instancia global de configuración
settings = Settings()
