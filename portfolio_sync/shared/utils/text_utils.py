"""
Utilidades de texto para la normalización de registros.

Funciones puras, sin I/O: slugs, títulos, créditos, links externos y
tiempo de lectura.
"""
import math
import re
import unicodedata
from typing import Any, Dict, List, Optional, Set, Tuple
from urllib.parse import urlparse

from portfolio_sync.shared.utils.video_utils import get_video_id

MAX_SLUG_LENGTH = 80
READING_WORDS_PER_MINUTE = 225

_LABELS_BY_HOST = {
    "imdb": "IMDb",
    "youtube": "YouTube",
    "linkedin": "LinkedIn",
    "instagram": "Instagram",
    "vimeo": "Vimeo",
    "facebook": "Facebook",
    "twitter": "Twitter",
    "tiktok": "TikTok",
    "behance": "Behance",
    "dribbble": "Dribbble",
    "github": "GitHub",
}

_LIST_SEPARATORS = re.compile(r"[,|\n]+")


def slugify(value: Any) -> str:
    """
    Convierte un texto arbitrario a slug URL-safe.

    Quita diacríticos (NFKD), pasa a minúsculas y reemplaza cualquier corrida
    no alfanumérica por un guion. Nunca retorna vacío: 'untitled'.
    """
    if not value:
        return "untitled"
    normalized = unicodedata.normalize("NFKD", str(value))
    normalized = "".join(c for c in normalized if not unicodedata.combining(c)).lower()
    slug = re.sub(r"[^a-z0-9]+", "-", normalized).strip("-")
    slug = re.sub(r"-{2,}", "-", slug)
    return slug or "untitled"


def make_slug(base: Any) -> str:
    """Slug truncado a 80 caracteres ('item' si queda vacío tras truncar)."""
    slug = slugify(base)[:MAX_SLUG_LENGTH]
    return slug or "item"


def make_unique_slug(base: Any, used: Set[str], fallback_id: Optional[str] = None) -> str:
    """
    Genera un slug único dentro de `used` y lo registra.

    Orden de desempate: sufijo corto derivado del id del registro y, si
    también colisiona, sufijo numérico incremental (-2, -3, ...).
    """
    candidate = make_slug(base)
    if candidate not in used:
        used.add(candidate)
        return candidate

    if fallback_id:
        suffix = re.sub(r"[^a-z0-9]", "", str(fallback_id).lower())[:6]
        alt = f"{candidate}-{suffix}"
        if suffix and alt not in used:
            used.add(alt)
            return alt

    i = 2
    while True:
        alt = f"{candidate}-{i}"
        if alt not in used:
            used.add(alt)
            return alt
        i += 1


def normalize_title(title: Optional[str]) -> str:
    """Title Case, sin guiones bajos/medios ni espacios repetidos."""
    if not title:
        return "Untitled"
    clean = re.sub(r"[_-]", " ", str(title))
    clean = re.sub(r"\s+", " ", clean).strip()
    if not clean:
        return "Untitled"
    return re.sub(r"\w\S*", lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), clean)


def parse_credits_text(text: Optional[str]) -> List[Dict[str, str]]:
    """
    Parsea créditos en texto libre con formato "Rol: Nombre".

    Separadores aceptados: coma, pipe y salto de línea. Un ítem sin ':'
    se registra con rol genérico 'Credit'.
    """
    if not text:
        return []
    credits: List[Dict[str, str]] = []
    for item in _split_list(text):
        role, sep, name = item.partition(":")
        if sep:
            credits.append({"role": role.strip(), "name": name.strip()})
        else:
            credits.append({"role": "Credit", "name": item})
    return credits


def calculate_reading_time(content: Optional[str]) -> str:
    if not content:
        return "1 min read"
    text = re.sub(r"<[^>]*>", "", content)
    word_count = len(re.split(r"\s+", text))
    minutes = max(1, math.ceil(word_count / READING_WORDS_PER_MINUTE))
    return f"{minutes} min read"


def get_label_from_url(url: str) -> str:
    """Etiqueta legible derivada del hostname (imdb.com -> 'IMDb')."""
    try:
        hostname = urlparse(url).hostname or ""
    except ValueError:
        return "Link"
    core = hostname.replace("www.", "").split(".")[0]
    if not core:
        return "Link"
    return _LABELS_BY_HOST.get(core, core[:1].upper() + core[1:])


def parse_external_links(raw_text: Optional[str]) -> Tuple[List[Dict[str, str]], List[str]]:
    """
    Separa un campo de links externos en (links, videos).

    Solo se consideran ítems que empiezan con 'http'. Los links de YouTube o
    Vimeo reconocibles van a la lista de videos; el resto lleva etiqueta.
    """
    links: List[Dict[str, str]] = []
    videos: List[str] = []
    if not raw_text:
        return links, videos

    for item in _split_list(raw_text):
        if not item.startswith("http"):
            continue
        video_type, _video_id, _hash = get_video_id(item)
        if video_type:
            videos.append(item)
        else:
            links.append({"label": get_label_from_url(item), "url": item})
    return links, videos


def normalize_project_type(raw_type: Optional[str]) -> str:
    if not raw_type:
        return "Uncategorized"
    lowered = raw_type.lower()
    if re.search(r"short|feature|narrative", lowered):
        return "Narrative"
    if re.search(r"commercial|tvc|brand", lowered):
        return "Commercial"
    if "music" in lowered:
        return "Music Video"
    if "documentary" in lowered:
        return "Documentary"
    return "Uncategorized"


def collapse_whitespace(text: Optional[str], max_length: Optional[int] = None) -> str:
    """Colapsa espacios/saltos de línea y opcionalmente trunca con '…'."""
    clean = re.sub(r"\s+", " ", text or "").strip()
    if max_length is not None and len(clean) > max_length:
        return clean[: max_length - 1].rstrip() + "…"
    return clean


def split_comma_list(value: Any) -> List[str]:
    """Acepta lista o string separado por comas; retorna lista limpia."""
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return []


def _split_list(text: str) -> List[str]:
    return [s.strip() for s in _LIST_SEPARATORS.split(text) if s.strip()]
