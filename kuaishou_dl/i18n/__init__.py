import functools
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from fastapi import Request

from kuaishou_dl.config.settings import config
from kuaishou_dl.utils.locale import get_locale

logger = logging.getLogger(__name__)

LOCALES_DIR = Path(__file__).resolve().parent.parent / "locales"


class I18n:
    """Nested-key message catalogs loaded from kuaishou_dl/locales/*.json"""

    def __init__(self, locales_dir: Path = LOCALES_DIR):
        self.locales_dir = locales_dir
        self.catalogs: Dict[str, Dict[str, Any]] = {}
        self.load_locales()

    def load_locales(self) -> None:
        if not self.locales_dir.is_dir():
            logger.warning("Locales directory not found at %s", self.locales_dir)
            return

        for path in sorted(self.locales_dir.glob("*.json")):
            try:
                self.catalogs[path.stem] = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.error("Error loading locale %s: %s", path.stem, e)

    def _lookup(self, locale: str, key: str) -> Optional[str]:
        node: Any = self.catalogs.get(locale)
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node if isinstance(node, str) else None

    def get(self, key: str, locale: Optional[str] = None, **kwargs) -> str:
        """
        Translate a dotted key such as "error.video_not_found".
        Missing keys fall back to the default locale, then English, then the key itself.
        """
        for candidate in (locale, config.i18n.default_locale, "en"):
            if not candidate:
                continue
            template = self._lookup(candidate, key)
            if template is None:
                continue
            try:
                return template.format(**kwargs)
            except (KeyError, IndexError):
                return template
        return key

    def for_request(self, request: Request) -> Callable[..., str]:
        """Translator bound to the caller's Accept-Language"""
        locale = get_locale(request.headers.get("accept-language"))
        return functools.partial(self.get, locale=locale)


i18n = I18n()
