"""
Endpoints de lectura de los datasets ya escritos por variante.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, status

from portfolio_sync.api.v1.dependencies.use_case_deps import get_dataset_repository, get_settings
from portfolio_sync.core.config import Settings
from portfolio_sync.domain.repositories.state_repository import IDatasetRepository


router = APIRouter(prefix="/data", tags=["Data"])


@router.get(
    "/{variant_id}",
    summary="Ultimo dataset escrito para una variante",
)
async def get_variant_dataset(
    variant_id: str,
    settings: Settings = Depends(get_settings),
    dataset_repository: IDatasetRepository = Depends(get_dataset_repository),
) -> Dict[str, Any]:
    """
    Devuelve el dataset tal como lo consume la capa de presentacion.

    El variant_id se resuelve a su namespace de salida segun la configuracion.
    """
    variants = {v.id: v for v in settings.load_variants()}
    variant = variants.get(variant_id)
    if variant is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Variante '{variant_id}' no configurada",
        )

    dataset = dataset_repository.load(variant.output_namespace)
    if dataset is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No hay dataset escrito para la variante '{variant_id}'",
        )
    return dataset.to_json_dict()
