import random
from typing import Dict, Optional

# Read-only pool; one entry is drawn per outbound request.
USER_AGENTS = (
    # iPhone Safari
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) "
    "Version/17.0 Mobile/15E148 Safari/604.1",
    # Android Chrome
    "Mozilla/5.0 (Linux; Android 13; SM-G998B) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Mobile Safari/537.36",
    # Windows Chrome
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36",
)

PLATFORM_ORIGIN = "https://www.kuaishou.com"
PLATFORM_REFERER = PLATFORM_ORIGIN + "/"

ACCEPT_HTML = (
    "text/html,application/xhtml+xml,application/xml;q=0.9,"
    "image/avif,image/webp,image/apng,*/*;q=0.8"
)
LANG_ZH_EN = "en-US,en;q=0.9,zh-CN;q=0.8,zh;q=0.7"


def random_user_agent() -> str:
    return random.choice(USER_AGENTS)


def build_headers(referer: Optional[str] = None) -> Dict[str, str]:
    """
    Browser-like header set with a rotated User-Agent.
    Referer defaults to the platform home page; Origin is always the platform.
    """
    return {
        "User-Agent": random_user_agent(),
        "Accept": ACCEPT_HTML,
        "Accept-Language": LANG_ZH_EN,
        "Accept-Encoding": "gzip, deflate, br",
        "Referer": referer or PLATFORM_REFERER,
        "Origin": PLATFORM_ORIGIN,
        "Connection": "keep-alive",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
    }
