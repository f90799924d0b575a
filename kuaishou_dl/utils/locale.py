from typing import Optional
from urllib.parse import urlsplit

from kuaishou_dl.config.settings import config


def get_locale(accept_language: Optional[str] = None) -> str:
    """First supported language tag in Accept-Language, in header order"""
    for entry in (accept_language or "").split(","):
        tag = entry.split(";", 1)[0].strip()
        primary = tag.split("-", 1)[0].lower()
        if primary in config.i18n.supported_locales:
            return primary
    return config.i18n.default_locale


def safe_url_for_log(url: str) -> str:
    """URL without its query string; signed CDN tokens never reach the logs"""
    try:
        parts = urlsplit(url)
    except ValueError:
        return "invalid_url"

    marker = "?..." if parts.query and config.logging.level == "DEBUG" else ""
    return f"{parts.scheme}://{parts.netloc}{parts.path}{marker}"
