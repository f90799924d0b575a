from .errors import (
    MediaNotFound,
    NetworkError,
    NoResponseError,
    PlatformUrlError,
    RedirectRefused,
    ResolverError,
    UpstreamError,
)

__all__ = [
    "MediaNotFound",
    "NetworkError",
    "NoResponseError",
    "PlatformUrlError",
    "RedirectRefused",
    "ResolverError",
    "UpstreamError",
]
