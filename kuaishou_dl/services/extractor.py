"""
Media extraction from Kuaishou page markup.

The page is scanned by an ordered list of strategies. Each strategy is a pure
function ``(PartialMedia, html) -> PartialMedia`` that only fills fields which
are still empty, so earlier strategies take precedence over later ones. A
strategy that blows up on odd markup is skipped, never fatal.
"""
import html as html_lib
import json
import logging
import re
from dataclasses import replace
from typing import Any, Callable, Iterable, List, Optional, Sequence
from urllib.parse import urljoin, urlsplit

from kuaishou_dl.config.settings import config
from kuaishou_dl.models.internal import PartialMedia
from kuaishou_dl.models.response import MediaDescriptor

logger = logging.getLogger(__name__)

Strategy = Callable[[PartialMedia, str], PartialMedia]


def _meta(prop: str) -> List[re.Pattern]:
    # Both attribute orders: property first or content first
    return [
        re.compile(r"""(?:property|name)=["']%s["'][^>]*content=["']([^"']+)["']""" % prop, re.I),
        re.compile(r"""content=["']([^"']+)["'][^>]*(?:property|name)=["']%s["']""" % prop, re.I),
    ]


def _quoted_url(body: str) -> re.Pattern:
    return re.compile(r"""["'](https?://%s)["']""" % body, re.I)


def _key(name: str) -> re.Pattern:
    return re.compile(r"""%s["']?\s*[:=]\s*["']([^"']+)["']""" % name, re.I)


TITLE_TAG = re.compile(r"<title[^>]*>([^<]+)</title>", re.I)
TITLE_SUFFIX = re.compile(r"\s*[-|–—]\s*(?:快手|kuaishou|kwai).*$", re.I)

OG_TITLE = _meta(r"og:title")
OG_IMAGE = _meta(r"og:image")
OG_VIDEO = _meta(r"og:video(?::url)?")

AUTHOR_PATTERNS = [
    re.compile(r"""\bby\s+@?([^<"\n]+)""", re.I),
    re.compile(r'"author"[:\s]*"([^"]+)"', re.I),
    re.compile(r'"userName"[:\s]*"([^"]+)"', re.I),
    re.compile(r'"name"[:\s]*"([^"]+)"', re.I),
]

JSON_SCRIPT = re.compile(
    r"""<script[^>]*type=["']application/(?:ld\+)?json["'][^>]*>([\s\S]*?)</script>""",
    re.I,
)

AUDIO_PATTERNS = [
    _quoted_url(r"""[^"'\s]+\.m4a[^"'\s]*?"""),
    _quoted_url(r"""[^"'\s]+\.mp3[^"'\s]*?"""),
    _quoted_url(r"""[^"'\s]+\.aac[^"'\s]*?"""),
    _key("audioUrl"),
    _key("soundTrack"),
]

MP4_URL = _quoted_url(r"""[^"'\s]+\.mp4[^"'\s]*?""")

VIDEO_PATTERNS = [
    MP4_URL,
    _key("videoUrl"),
    _key("playUrl"),
    _key("srcNoMark"),
]

MANIFEST_PATTERNS = [
    _quoted_url(r"""[^"'\s]+\.m3u8[^"'\s]*?"""),
    _key("hlsPlayUrl"),
]

THUMBNAIL_PATTERNS = [
    _quoted_url(r"""[^"'\s]+(?:cover|poster|thumb)[^"'\s]*\.(?:jpg|jpeg|png|webp)[^"'\s]*?"""),
    _key("coverUrl"),
    _key("posterUrl"),
]

UNICODE_ESCAPE = re.compile(r"\\u([0-9a-fA-F]{4})")


def unescape_url(value: str) -> str:
    """Undo JSON string escaping (``\\u002F``, ``\\/``) left in embedded markup."""
    value = UNICODE_ESCAPE.sub(lambda m: chr(int(m.group(1), 16)), value)
    return value.replace("\\", "")


def _fill(partial: PartialMedia, **values: str) -> PartialMedia:
    updates = {}
    for name, value in values.items():
        value = (value or "").strip()
        if value and not getattr(partial, name):
            updates[name] = value
    return replace(partial, **updates) if updates else partial


def _search_any(patterns: Iterable[re.Pattern], text: str) -> str:
    for pattern in patterns:
        m = pattern.search(text)
        if m:
            return m.group(1)
    return ""


def _first_match(
    patterns: Sequence[re.Pattern],
    text: str,
    accept: Optional[Callable[[str], bool]] = None,
) -> str:
    """First accepted match of the first pattern family that yields one"""
    for pattern in patterns:
        for m in pattern.finditer(text):
            candidate = m.group(1)
            if accept is None or accept(candidate):
                return candidate
    return ""


def _is_video_candidate(url: str) -> bool:
    # poster/cover .mp4 links sit right next to the real video in the markup
    unescaped = unescape_url(url)
    if ".mp4" not in unescaped:
        return False
    path = urlsplit(unescaped).path.lower()
    return "poster" not in path and "cover" not in path


def _in_video_path(url: str) -> bool:
    return _is_video_candidate(url) and "video" in urlsplit(unescape_url(url)).path.lower()


def _meta_url(value: str) -> str:
    return value.replace("&amp;", "&")


# Strategies, in cascade order


def title_from_tags(partial: PartialMedia, html: str) -> PartialMedia:
    title = ""
    m = TITLE_TAG.search(html)
    if m:
        title = TITLE_SUFFIX.sub("", m.group(1)).strip()

    og_title = _search_any(OG_TITLE, html).strip()
    if og_title:
        title = og_title

    return _fill(partial, title=html_lib.unescape(title))


def thumbnail_from_og(partial: PartialMedia, html: str) -> PartialMedia:
    return _fill(partial, thumbnail=_meta_url(_search_any(OG_IMAGE, html)))


def video_from_og(partial: PartialMedia, html: str) -> PartialMedia:
    return _fill(partial, video_url=_meta_url(_search_any(OG_VIDEO, html)))


def author_from_patterns(partial: PartialMedia, html: str) -> PartialMedia:
    return _fill(partial, author=_search_any(AUTHOR_PATTERNS, html))


def _json_nodes(data: Any) -> List[dict]:
    if isinstance(data, dict):
        return [data]
    if isinstance(data, list):
        return [node for node in data if isinstance(node, dict)]
    return []


def _as_str(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return next((v for v in value if isinstance(v, str)), "")
    return ""


def structured_data(partial: PartialMedia, html: str) -> PartialMedia:
    for m in JSON_SCRIPT.finditer(html):
        try:
            data = json.loads(m.group(1))
        except (ValueError, RecursionError):
            logger.debug("Skipping malformed JSON script block")
            continue

        for node in _json_nodes(data):
            author = node.get("author")
            partial = _fill(
                partial,
                video_url=_as_str(node.get("contentUrl")),
                thumbnail=_as_str(node.get("thumbnailUrl")),
                title=_as_str(node.get("name")),
                author=_as_str(author.get("name")) if isinstance(author, dict) else "",
            )
    return partial


def audio_from_patterns(partial: PartialMedia, html: str) -> PartialMedia:
    if partial.audio_url:
        return partial
    return _fill(partial, audio_url=_first_match(AUDIO_PATTERNS, html))


def video_fallback(partial: PartialMedia, html: str) -> PartialMedia:
    if partial.video_url:
        return partial
    video_url = (
        _first_match([MP4_URL], html, _in_video_path)
        or _first_match(VIDEO_PATTERNS, html, _is_video_candidate)
    )
    return _fill(partial, video_url=video_url)


def manifest_fallback(partial: PartialMedia, html: str) -> PartialMedia:
    if partial.video_url:
        return partial
    return _fill(partial, video_url=_first_match(MANIFEST_PATTERNS, html))


def thumbnail_fallback(partial: PartialMedia, html: str) -> PartialMedia:
    if partial.thumbnail:
        return partial
    return _fill(partial, thumbnail=_first_match(THUMBNAIL_PATTERNS, html))


CASCADE: List[Strategy] = [
    title_from_tags,
    thumbnail_from_og,
    video_from_og,
    author_from_patterns,
    structured_data,
    audio_from_patterns,
    video_fallback,
    manifest_fallback,
    thumbnail_fallback,
]


def run_cascade(html: str, strategies: Sequence[Strategy] = CASCADE) -> PartialMedia:
    partial = PartialMedia()
    for strategy in strategies:
        try:
            partial = strategy(partial, html)
        except Exception:
            logger.debug("Extraction strategy %s failed", strategy.__name__, exc_info=True)
    return partial


def _finalize_url(value: str, page_url: str) -> str:
    if not value:
        return ""
    value = unescape_url(value).strip()
    if value and page_url and not urlsplit(value).scheme:
        # protocol-relative or page-relative
        value = urljoin(page_url, value)
    return value


def extract(html: str, page_url: str = "") -> Optional[MediaDescriptor]:
    """
    Build a MediaDescriptor from page markup.
    Returns None when no video URL could be found, however much else was.
    """
    partial = run_cascade(html or "")

    video_url = _finalize_url(partial.video_url, page_url)
    if not video_url:
        return None

    return MediaDescriptor(
        title=partial.title or config.resolver.default_title,
        author=partial.author or config.resolver.default_author,
        thumbnail=_finalize_url(partial.thumbnail, page_url),
        video_url=video_url,
        audio_url=_finalize_url(partial.audio_url, page_url) or None,
        quality=config.resolver.quality_label,
        file_size="",
    )
