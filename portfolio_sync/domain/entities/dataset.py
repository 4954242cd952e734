"""
Modelos del dataset normalizado: el contrato con la capa de presentación.

Se serializan con claves camelCase (model_dump(by_alias=True)). Todo lo que
contienen es derivable de los registros upstream + el mapping store.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base con alias camelCase; acepta también nombres snake_case al validar."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Credit(CamelModel):
    role: str
    name: str


class ExternalLink(CamelModel):
    label: str
    url: str


class NormalizedProject(CamelModel):
    id: str
    slug: str
    title: str
    type: str = "Uncategorized"
    kinds: List[str] = Field(default_factory=list)
    genre: List[str] = Field(default_factory=list)
    production_company: str = ""
    client: str = ""
    year: str = ""
    release_date: str = ""
    work_date: str = ""
    description: str = ""
    is_featured: bool = False
    is_hero: bool = False
    hero_image: str = ""
    gallery: List[str] = Field(default_factory=list)
    video_url: str = ""
    additional_videos: List[str] = Field(default_factory=list)
    awards: List[str] = Field(default_factory=list)
    credits: List[Credit] = Field(default_factory=list)
    external_links: List[ExternalLink] = Field(default_factory=list)
    related_article_id: Optional[str] = None


class NormalizedPost(CamelModel):
    id: str
    slug: str
    title: str
    date: str = ""
    status: str = "Published"
    content: str = ""
    excerpt: str = ""
    reading_time: str = "1 min read"
    image_url: str = ""
    tags: List[str] = Field(default_factory=list)
    related_project_id: Optional[str] = None
    related_links: List[str] = Field(default_factory=list)
    source: str = "local"


class Showreel(CamelModel):
    enabled: bool = False
    video_url: str = ""
    placeholder_image: str = ""


class Contact(CamelModel):
    email: str = ""
    phone: str = ""
    rep_uk: str = Field(default="", alias="repUK")
    rep_usa: str = Field(default="", alias="repUSA")
    instagram: str = ""
    vimeo: str = ""
    linkedin: str = ""
    imdb: str = ""


class About(CamelModel):
    bio: str = ""
    profile_image: str = ""


class PortfolioSettings(CamelModel):
    """Configuración del sitio resuelta desde la fila Settings de la variante."""

    portfolio_id: str = ""
    site_title: str = ""
    nav_title: str = ""
    seo_title: str = ""
    seo_description: str = ""
    domain: str = ""
    logo: str = ""
    favicon: str = ""
    font_family: str = ""
    work_section_label: str = "Filmography"
    has_journal: bool = False
    show_role_filter: bool = False
    show_other_portfolio_link: bool = False
    other_portfolio_url: str = ""
    other_portfolio_label: str = ""
    about_layout: str = "standard"
    theme_mode: str = "dark"
    trading_name_disclosure: str = ""
    ga_measurement_id: str = ""
    showreel: Showreel = Field(default_factory=Showreel)
    contact: Contact = Field(default_factory=Contact)
    about: About = Field(default_factory=About)
    allowed_roles: List[str] = Field(default_factory=list)
    default_og_image: str = ""
    portfolio_owner_name: str = ""
    last_modified: str = ""


class Dataset(CamelModel):
    """
    Artefacto terminal de una variante.

    last_attempted_at es metadata en memoria: se re-sella en corridas
    degradadas y nunca se escribe en el archivo del dataset.
    """

    variant_id: str
    output_namespace: str
    generated_at: str
    records: List[NormalizedProject] = Field(default_factory=list)
    auxiliary_collections: Dict[str, List[NormalizedPost]] = Field(default_factory=dict)
    config: PortfolioSettings = Field(default_factory=PortfolioSettings)
    last_attempted_at: Optional[str] = Field(default=None, exclude=True)

    @property
    def posts(self) -> List[NormalizedPost]:
        return self.auxiliary_collections.get("posts", [])

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")
