from pydantic import BaseModel, Field, field_validator
from urllib.parse import urlparse

from kuaishou_dl.core.security import ALLOWED_SCHEMES, is_platform_host

class ResolveRequest(BaseModel):
    url: str = Field(..., description="Kuaishou share or video page URL")

    @field_validator("url")
    @classmethod
    def validate_platform_url(cls, v):
        """Absolute http(s) URL on a platform host; the resolver trusts this check"""
        v = v.strip()
        try:
            parsed = urlparse(v)
        except ValueError:
            raise ValueError("Invalid URL format")
        if parsed.scheme not in ALLOWED_SCHEMES or not parsed.hostname:
            raise ValueError("Invalid URL format")
        if not is_platform_host(parsed.hostname):
            raise ValueError("URL is not a Kuaishou link")
        return v
