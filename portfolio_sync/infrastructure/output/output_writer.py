"""
Writer de artefactos por variante.

Cada variante escribe en su propio namespace, así dos variantes nunca
colisionan en rutas de salida:
- dataset-{ns}.json
- sitemap-{ns}.xml
- share-meta-{ns}.json
- robots-{ns}.txt
"""
from pathlib import Path
from typing import List, Optional, Union

from loguru import logger

from portfolio_sync.application.services.output_builders import (
    build_robots,
    build_share_meta,
    build_sitemap,
    resolve_base_url,
)
from portfolio_sync.domain.entities.dataset import Dataset
from portfolio_sync.infrastructure.repositories.json_state_repository import dataset_path
from portfolio_sync.infrastructure.storage.atomic_writer import (
    atomic_write_json,
    atomic_write_text,
)

PathLike = Union[str, Path]


class OutputWriter:
    def __init__(self, output_dir: PathLike):
        self.output_dir = Path(output_dir)

    def artifact_paths(self, output_namespace: str) -> List[Path]:
        return [
            dataset_path(self.output_dir, output_namespace),
            self.output_dir / f"sitemap-{output_namespace}.xml",
            self.output_dir / f"share-meta-{output_namespace}.json",
            self.output_dir / f"robots-{output_namespace}.txt",
        ]

    def write(self, dataset: Dataset, base_url: Optional[str] = None) -> List[Path]:
        """
        Escribe los cuatro artefactos de la variante, cada uno de forma atómica.

        Raises:
            OutputSerializationError: si algún artefacto no se pudo escribir
        """
        ns = dataset.output_namespace
        dataset_file, sitemap_file, share_file, robots_file = self.artifact_paths(ns)
        site_url = resolve_base_url(dataset, base_url)

        written = [
            atomic_write_json(dataset_file, dataset.to_json_dict()),
            atomic_write_text(sitemap_file, build_sitemap(dataset, site_url)),
            atomic_write_json(share_file, build_share_meta(dataset)),
            atomic_write_text(robots_file, build_robots(site_url)),
        ]
        logger.info(
            f"[{dataset.variant_id}] artefactos escritos en {self.output_dir} "
            f"({len(dataset.records)} proyectos, {len(dataset.posts)} posts)"
        )
        return written
