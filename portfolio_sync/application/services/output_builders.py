"""
Artefactos derivados de un Dataset: sitemap, share-meta y robots.

Funciones puras que retornan texto o dicts; la escritura atómica la hace
el OutputWriter.
"""
from typing import Any, Dict, List, Optional
from xml.sax.saxutils import escape

from portfolio_sync.domain.entities.dataset import Dataset
from portfolio_sync.shared.utils.text_utils import collapse_whitespace

DEFAULT_DOMAIN = "example.com"
SHARE_DESCRIPTION_MAX = 220


def resolve_base_url(dataset: Dataset, override: Optional[str] = None) -> str:
    """
    URL base absoluta del sitio de la variante, sin '/' final.

    Prioridad: override de la variante, 'Domain' de Settings, example.com.
    """
    raw = (override or dataset.config.domain or DEFAULT_DOMAIN).strip().rstrip("/")
    if not raw.startswith(("http://", "https://")):
        raw = f"https://{raw}"
    return raw


def _url_entry(loc: str, lastmod: str, changefreq: str, priority: str) -> str:
    return (
        "  <url>\n"
        f"    <loc>{escape(loc)}</loc>\n"
        f"    <lastmod>{escape(lastmod)}</lastmod>\n"
        f"    <changefreq>{changefreq}</changefreq>\n"
        f"    <priority>{priority}</priority>\n"
        "  </url>\n"
    )


def build_sitemap(dataset: Dataset, base_url: str) -> str:
    """
    Sitemap sitemaps.org de la variante.

    El lastmod de las páginas estáticas es la fecha de generatedAt del dataset,
    así el sitemap es determinista para un mismo dataset.
    """
    today = dataset.generated_at[:10]
    has_journal = dataset.config.has_journal

    parts = ['<?xml version="1.0" encoding="UTF-8"?>\n']
    parts.append('<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n')
    parts.append(_url_entry(f"{base_url}/", today, "weekly", "1.0"))
    parts.append(_url_entry(f"{base_url}/work", today, "monthly", "0.9"))
    if has_journal:
        parts.append(_url_entry(f"{base_url}/journal", today, "monthly", "0.8"))
    parts.append(_url_entry(f"{base_url}/about", today, "yearly", "0.7"))

    for project in dataset.records:
        lastmod = f"{project.year}-01-01" if project.year else today
        if project.type == "Narrative":
            priority = "0.9"
        elif project.is_featured:
            priority = "0.8"
        else:
            priority = "0.7"
        parts.append(_url_entry(f"{base_url}/work/{project.slug}", lastmod, "monthly", priority))

    if has_journal:
        for post in dataset.posts:
            parts.append(_url_entry(f"{base_url}/journal/{post.slug}", post.date[:10] or today, "monthly", "0.7"))

    parts.append("</urlset>\n")
    return "".join(parts)


def build_share_meta(dataset: Dataset) -> Dict[str, Any]:
    """Manifiesto para previews sociales: imagen y descripción corta por registro."""
    default_image = dataset.config.default_og_image

    projects: List[Dict[str, Any]] = [
        {
            "id": p.id,
            "slug": p.slug,
            "title": p.title,
            "description": collapse_whitespace(p.description, SHARE_DESCRIPTION_MAX),
            "image": p.hero_image or default_image,
            "type": p.type,
            "year": p.year,
        }
        for p in dataset.records
    ]
    posts: List[Dict[str, Any]] = [
        {
            "id": post.id,
            "slug": post.slug,
            "title": post.title,
            "description": collapse_whitespace(post.excerpt or post.content, SHARE_DESCRIPTION_MAX),
            "image": post.image_url or default_image,
            "type": "article",
            "date": post.date,
        }
        for post in dataset.posts
    ]
    return {
        "generatedAt": dataset.generated_at,
        "variantId": dataset.variant_id,
        "projects": projects,
        "posts": posts,
        "config": {"defaultOgImage": default_image},
    }


def build_robots(base_url: str) -> str:
    return (
        "User-agent: *\n"
        "Allow: /\n"
        "Disallow: /admin\n"
        "Disallow: /.env\n"
        "\n"
        f"Sitemap: {base_url}/sitemap.xml\n"
        "\n"
        "# Crawlers de redes sociales\n"
        "User-agent: facebookexternalhit\n"
        "Allow: /\n"
        "\n"
        "User-agent: Twitterbot\n"
        "Allow: /\n"
        "\n"
        "User-agent: LinkedInBot\n"
        "Allow: /\n"
    )
