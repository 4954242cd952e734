"""
Detección de videos de YouTube/Vimeo y miniaturas derivadas.

Sin llamadas de red: la miniatura de Vimeo se resuelve con vumbnail.com en
lugar del endpoint oEmbed, así el builder de variantes sigue siendo puro.
"""
import re
from typing import Optional, Tuple

_YOUTUBE_RE = re.compile(
    r"(?:youtube\.com/(?:[^/]+/.+/|(?:v|e(?:mbed)?|shorts|live)/|.*[?&]v=)|youtu\.be/)([^\"&?/\s]{11})"
)
_VIMEO_RE = re.compile(
    r"(?:vimeo\.com/|player\.vimeo\.com/video/)"
    r"(?:(?:channels/[a-zA-Z0-9]+/)|(?:groups/[a-zA-Z0-9]+/videos/)|(?:manage/videos/))?"
    r"([0-9]+)(?:/([a-zA-Z0-9]+))?"
)
_VIMEO_HASH_RE = re.compile(r"[?&]h=([a-zA-Z0-9]+)")


def get_video_id(url: Optional[str]) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """
    Extrae (tipo, id, hash) de una URL de video.

    Returns:
        ('youtube', id, None), ('vimeo', id, hash|None) o (None, None, None)
    """
    if not url:
        return None, None, None
    clean = url.strip()

    yt = _YOUTUBE_RE.search(clean)
    if yt:
        return "youtube", yt.group(1), None

    vimeo = _VIMEO_RE.search(clean)
    if vimeo:
        video_hash = vimeo.group(2)
        if not video_hash and "?" in clean:
            query_hash = _VIMEO_HASH_RE.search(clean)
            if query_hash:
                video_hash = query_hash.group(1)
        return "vimeo", vimeo.group(1), video_hash

    return None, None, None


def video_thumbnail_url(url: Optional[str]) -> str:
    """
    Miniatura del primer video reconocible en `url` (acepta lista separada por comas).
    """
    if not url:
        return ""
    for candidate in url.split(","):
        video_type, video_id, _hash = get_video_id(candidate)
        if video_type == "youtube":
            return f"https://img.youtube.com/vi/{video_id}/maxresdefault.jpg"
        if video_type == "vimeo":
            return f"https://vumbnail.com/{video_id}.jpg"
    return ""
