"""
Builder de variantes: registros mergeados -> Dataset normalizado.

build_variant es una función pura: no comparte estado mutable entre
variantes y no hace I/O, así las variantes pueden construirse en cualquier
orden. Es además la única frontera donde los campos dinámicos del upstream
se traducen a modelos tipados.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set

from loguru import logger

from portfolio_sync.application.services.asset_deduplicator import resolve_field_urls
from portfolio_sync.domain.entities.assets import MappingStore
from portfolio_sync.domain.entities.dataset import (
    About,
    Contact,
    Credit,
    Dataset,
    ExternalLink,
    NormalizedPost,
    NormalizedProject,
    PortfolioSettings,
    Showreel,
)
from portfolio_sync.domain.entities.records import SourceRecord
from portfolio_sync.domain.entities.variant import PortfolioVariant, record_roles
from portfolio_sync.shared.constants.sync_constants import (
    CLIENTS_TABLE,
    FESTIVALS_TABLE,
    JOURNAL_TABLE,
    POSTS_COLLECTION,
    PROJECTS_TABLE,
    SETTINGS_TABLE,
)
from portfolio_sync.shared.utils.text_utils import (
    calculate_reading_time,
    make_unique_slug,
    normalize_project_type,
    normalize_title,
    parse_credits_text,
    parse_external_links,
    split_comma_list,
)
from portfolio_sync.shared.utils.video_utils import video_thumbnail_url

RecordsByTable = Mapping[str, Sequence[SourceRecord]]

PUBLISHED_STATUS = "Published"
EMPTY_DATE = "1900-01-01"


@dataclass(frozen=True)
class VariantSelection:
    """Registros que una variante consume (sirve para decidir qué espejar)."""

    settings_row: Optional[SourceRecord]
    projects: List[SourceRecord]
    posts: List[SourceRecord]


def find_settings_row(settings_records: Sequence[SourceRecord], portfolio_id: str) -> Optional[SourceRecord]:
    """
    Fila de Settings cuyo 'Portfolio ID' coincide (case-insensitive);
    si ninguna coincide, la primera fila; None si la tabla está vacía.
    """
    if not settings_records:
        return None
    wanted = (portfolio_id or "").lower()
    for record in settings_records:
        if str(record.fields.get("Portfolio ID") or "").lower() == wanted:
            return record
    logger.debug(f"Sin fila de Settings para '{portfolio_id}', se usa la primera")
    return settings_records[0]


def effective_allowed_roles(variant: PortfolioVariant, settings_row: Optional[SourceRecord]) -> List[str]:
    if variant.allowed_roles is not None:
        return list(variant.allowed_roles)
    if settings_row is None:
        return []
    return split_comma_list(settings_row.fields.get("Allowed Roles"))


def _has_journal(settings_row: Optional[SourceRecord]) -> bool:
    return bool(settings_row.fields.get("Has Journal")) if settings_row is not None else False


def select_records(records: RecordsByTable, variant: PortfolioVariant) -> VariantSelection:
    """Aplica el predicado de inclusión de la variante sin normalizar."""
    settings_row = find_settings_row(records.get(SETTINGS_TABLE, []), variant.settings_portfolio_id)
    predicate = variant.inclusion_predicate(effective_allowed_roles(variant, settings_row))

    projects = [r for r in records.get(PROJECTS_TABLE, []) if predicate(r)]
    posts: List[SourceRecord] = []
    if _has_journal(settings_row):
        posts = [
            r for r in records.get(JOURNAL_TABLE, [])
            if str(r.fields.get("Status") or "") == PUBLISHED_STATUS
        ]
    return VariantSelection(settings_row=settings_row, projects=projects, posts=posts)


def build_variant(
    records: RecordsByTable,
    variant: PortfolioVariant,
    store: MappingStore,
    generated_at: str,
) -> Dataset:
    """
    Construye el Dataset de una variante.

    Args:
        records: conjunto mergeado completo, por nombre de tabla
        variant: definición de la variante
        store: mapping store (solo lectura) para resolver URLs del mirror
        generated_at: sello de la corrida (inyectado, no se lee el reloj)
    """
    selection = select_records(records, variant)
    config = build_settings(selection.settings_row, variant, store)

    festivals = build_lookup(records.get(FESTIVALS_TABLE, []), ("Display Name", "Name", "Award"), "Unknown Award")
    clients = build_lookup(records.get(CLIENTS_TABLE, []), ("Company", "Company Name", "Client"), "Unknown")

    projects = [
        normalize_project(r, variant, config, festivals, clients, store)
        for r in selection.projects
    ]
    projects.sort(key=lambda p: (p.release_date or p.work_date or EMPTY_DATE, p.id), reverse=True)
    used: Set[str] = set()
    for project in projects:
        project.slug = make_unique_slug(f"{project.title} {project.year}".strip(), used, project.id)

    posts = [normalize_post(r, store) for r in selection.posts]
    posts.sort(key=lambda p: (p.date or EMPTY_DATE, p.id), reverse=True)
    used_posts: Set[str] = set()
    for post in posts:
        post.slug = make_unique_slug(f"{post.title} {post.date[:10]}".strip(), used_posts, post.id)

    logger.debug(
        f"[{variant.id}] variante construida: {len(projects)} proyectos, {len(posts)} posts"
    )
    return Dataset(
        variant_id=variant.id,
        output_namespace=variant.output_namespace,
        generated_at=generated_at,
        records=projects,
        auxiliary_collections={POSTS_COLLECTION: posts},
        config=config,
    )


def build_lookup(records: Sequence[SourceRecord], name_fields: Sequence[str], default: str) -> Dict[str, str]:
    lookup: Dict[str, str] = {}
    for record in records:
        name = next((record.fields[f] for f in name_fields if record.fields.get(f)), default)
        lookup[record.id] = str(name)
    return lookup


def _as_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, list):
        return [str(v) for v in value]
    return [str(value)]


def _first_link(value: Any) -> Optional[str]:
    if isinstance(value, list):
        return str(value[0]) if value else None
    return str(value) if value else None


def resolve_awards(value: Any, festivals: Mapping[str, str]) -> List[str]:
    """Lista de ids de Festivals o texto separado por saltos de línea."""
    if not value:
        return []
    if isinstance(value, list):
        return [festivals.get(str(v), str(v)) for v in value]
    if isinstance(value, str):
        return [line for line in value.split("\n") if line.strip()]
    return []


def resolve_production_company(value: Any, clients: Mapping[str, str]) -> str:
    if isinstance(value, list):
        return ", ".join(clients.get(str(v), str(v)) for v in value)
    if value:
        return clients.get(str(value), str(value))
    return ""


def normalize_project(
    record: SourceRecord,
    variant: PortfolioVariant,
    config: PortfolioSettings,
    festivals: Mapping[str, str],
    clients: Mapping[str, str],
    store: MappingStore,
) -> NormalizedProject:
    """Traduce un registro de Projects. El slug se asigna después de ordenar."""
    f = record.fields
    display_status = variant.display_status(record)
    title = normalize_title(f.get("Name") or "Untitled")
    release_date = str(f.get("Release Date") or "")
    work_date = str(f.get("Work Date") or release_date)
    year = (release_date or work_date).split("-")[0]

    credits: List[Credit] = []
    if config.portfolio_owner_name and config.allowed_roles:
        allowed = set(config.allowed_roles)
        credits.extend(
            Credit(role=role, name=config.portfolio_owner_name)
            for role in record_roles(record)
            if role in allowed
        )
    for credit in parse_credits_text(f.get("Credits (new)") or f.get("Credits") or ""):
        credits.append(Credit(**credit))

    links, external_videos = parse_external_links(f.get("External Links") or "")
    primary_videos = [v.strip() for v in str(f.get("Video URL") or "").split(",") if v.strip()]
    videos = primary_videos + [v for v in external_videos if v not in primary_videos]
    video_url = ", ".join(videos)

    gallery = resolve_field_urls(store, record, "Gallery")
    hero_image = gallery[0] if gallery else video_thumbnail_url(video_url)

    kinds = _as_list(f.get("Kind")) or _as_list(f.get("Kinds"))

    return NormalizedProject(
        id=record.id,
        slug="",
        title=title,
        type=normalize_project_type(str(f.get("Project Type") or "")),
        kinds=kinds,
        genre=_as_list(f.get("Genre")),
        production_company=resolve_production_company(f.get("Production Company"), clients),
        client=str(f.get("Client") or ""),
        year=year,
        release_date=release_date,
        work_date=work_date,
        description=str(f.get("About") or f.get("Description") or ""),
        is_featured=display_status in ("Featured", "Hero"),
        is_hero=display_status == "Hero",
        hero_image=hero_image,
        gallery=gallery,
        video_url=video_url,
        awards=resolve_awards(f.get("Festivals") or f.get("Awards"), festivals),
        credits=credits,
        external_links=[ExternalLink(**link) for link in links],
        related_article_id=_first_link(f.get("Related Article")),
    )


def normalize_post(record: SourceRecord, store: MappingStore) -> NormalizedPost:
    f = record.fields
    content = str(f.get("Content") or "")
    covers = resolve_field_urls(store, record, "Cover Image")
    raw_links = str(f.get("Links") or f.get("External Links") or "")
    return NormalizedPost(
        id=record.id,
        slug="",
        title=normalize_title(f.get("Title") or "Untitled"),
        date=str(f.get("Publish Date") or f.get("Date") or ""),
        status=str(f.get("Status") or ""),
        content=content,
        excerpt=str(f.get("Excerpt") or ""),
        reading_time=calculate_reading_time(content),
        image_url=covers[0] if covers else "",
        tags=_as_list(f.get("Tags")),
        related_project_id=_first_link(f.get("Related Project")),
        related_links=[s.strip() for s in raw_links.split(",") if s.strip()],
    )


def build_settings(
    row: Optional[SourceRecord],
    variant: PortfolioVariant,
    store: MappingStore,
) -> PortfolioSettings:
    """PortfolioSettings de la variante; valores por defecto si no hay fila."""
    if row is None:
        return PortfolioSettings(
            portfolio_id=variant.settings_portfolio_id,
            domain=variant.base_url or "",
            allowed_roles=list(variant.allowed_roles or []),
        )

    f = row.fields

    def image(field: str) -> str:
        urls = resolve_field_urls(store, row, field)
        return urls[0] if urls else ""

    site_title = str(f.get("Site Title") or "")
    return PortfolioSettings(
        portfolio_id=str(f.get("Portfolio ID") or variant.settings_portfolio_id),
        site_title=site_title,
        nav_title=str(f.get("Nav Title") or ""),
        seo_title=str(f.get("SEO Title") or ""),
        seo_description=str(f.get("SEO Description") or ""),
        domain=variant.base_url or str(f.get("Domain") or ""),
        logo=image("Logo"),
        favicon=image("Favicon"),
        font_family=str(f.get("Font Family") or ""),
        work_section_label=str(f.get("Work Section Label") or "Filmography"),
        has_journal=bool(f.get("Has Journal")),
        show_role_filter=bool(f.get("Show Role Filter")),
        show_other_portfolio_link=bool(f.get("Show Other Portfolio Link")),
        other_portfolio_url=str(f.get("Other Portfolio URL") or ""),
        other_portfolio_label=str(f.get("Other Portfolio Label") or ""),
        about_layout=str(f.get("About Layout") or "standard"),
        theme_mode=str(f.get("Theme Mode") or "dark"),
        trading_name_disclosure=str(f.get("Trading Name Disclosure") or ""),
        ga_measurement_id=str(f.get("GA Measurement ID") or ""),
        showreel=Showreel(
            enabled=bool(f.get("Showreel Enabled")),
            video_url=str(f.get("Showreel URL") or ""),
            placeholder_image=image("Showreel Placeholder"),
        ),
        contact=Contact(
            email=str(f.get("Contact Email") or ""),
            phone=str(f.get("Contact Phone") or ""),
            rep_uk=str(f.get("Rep UK") or ""),
            rep_usa=str(f.get("Rep USA") or ""),
            instagram=str(f.get("Instagram URL") or ""),
            vimeo=str(f.get("Vimeo URL") or ""),
            linkedin=str(f.get("LinkedIn URL") or f.get("Linkedin URL") or ""),
            imdb=str(f.get("IMDb URL") or f.get("IMDB URL") or ""),
        ),
        about=About(bio=str(f.get("Bio") or ""), profile_image=image("About Image")),
        allowed_roles=effective_allowed_roles(variant, row),
        default_og_image=image("Default OG Image"),
        portfolio_owner_name=str(f.get("Owner Name") or f.get("Portfolio Owner") or site_title),
        last_modified=row.last_modified,
    )
