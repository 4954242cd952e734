"""
Handler de rate-limit y fallback a caché.

Máquina de estados:
- LIVE: operación normal
- DEGRADED: el upstream rechazó por cuota (o no estuvo disponible) en esta
  corrida; se abandona el fetch live y se sirve el último dataset escrito
- FATAL: no hay datos live ni dataset en caché para ninguna variante

Solo FATAL aborta el pipeline con exit code != 0.
"""
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from loguru import logger

from portfolio_sync.domain.entities.dataset import Dataset
from portfolio_sync.domain.entities.variant import PortfolioVariant
from portfolio_sync.domain.repositories.state_repository import IDatasetRepository
from portfolio_sync.shared.constants.sync_constants import SyncState
from portfolio_sync.shared.exceptions.sync import FatalSyncError, QuotaExceededError, UpstreamError

T = TypeVar("T")


class RateLimitFallbackHandler:
    """
    Envuelve las llamadas al upstream y resuelve el fallback por variante.
    """

    def __init__(self, dataset_repository: IDatasetRepository) -> None:
        self._datasets = dataset_repository
        self.state = SyncState.LIVE
        self.reason: Optional[str] = None
        self.missing_variants: List[str] = []

    def call(self, fn: Callable[..., T], *args, **kwargs) -> T:
        """
        Ejecuta una llamada al upstream.

        Un UpstreamError (cuota incluida) pasa el estado a DEGRADED y se
        relanza para que el caso de uso abandone el fetch en curso.
        """
        try:
            return fn(*args, **kwargs)
        except UpstreamError as e:
            self.degrade(e)
            raise

    def degrade(self, error: Exception) -> None:
        if self.state != SyncState.LIVE:
            return
        self.state = SyncState.DEGRADED
        self.reason = getattr(error, "error_code", None) or type(error).__name__
        if isinstance(error, QuotaExceededError):
            logger.warning(f"Cuota del upstream excedida ({error.message}); se sirve el último dataset en caché")
        else:
            logger.warning(f"Upstream no disponible ({error}); se sirve el último dataset en caché")

    def serve_cache(self, variants: Sequence[PortfolioVariant], attempted_at: str) -> Dict[str, Dataset]:
        """
        Carga el último dataset escrito de cada variante, sin modificar archivos.

        Solo se re-sella `last_attempted_at` en memoria.

        Raises:
            FatalSyncError: si ninguna variante tiene dataset en caché
        """
        served: Dict[str, Dataset] = {}
        self.missing_variants = []
        for variant in variants:
            dataset = self._datasets.load(variant.output_namespace)
            if dataset is None:
                self.missing_variants.append(variant.id)
                logger.error(f"[{variant.id}] sin dataset en caché: la variante no se puede servir")
                continue
            served[variant.id] = dataset.model_copy(update={"last_attempted_at": attempted_at})
            logger.info(f"[{variant.id}] servido desde caché (generado {dataset.generated_at})")

        if not served:
            self.state = SyncState.FATAL
            logger.error("FATAL: sin datos live ni caché disponible")
            raise FatalSyncError(
                "No hay datos live ni datasets en caché para ninguna variante",
                reason=self.reason,
            )
        return served
