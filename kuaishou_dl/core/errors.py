from typing import Optional


class ResolverError(Exception):
    """Base error carrying the HTTP status and i18n key used at the API boundary"""
    status_code = 500
    message_key = "error.fetch_failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "")
        self.message = message


class PlatformUrlError(ResolverError):
    """Malformed URL or a host outside the supported platform"""
    status_code = 400
    message_key = "error.invalid_url"


class NetworkError(ResolverError):
    """Transport failure while fetching a page or relaying media"""
    status_code = 502
    message_key = "error.network"


class NoResponseError(ResolverError):
    """The redirect loop finished without obtaining any response"""
    status_code = 500
    message_key = "error.no_response"


class MediaNotFound(ResolverError):
    """The extraction cascade found no usable video URL"""
    status_code = 404
    message_key = "error.video_not_found"


class UpstreamError(ResolverError):
    """The media host answered with a non-success status"""
    message_key = "error.download_failed"

    def __init__(self, status_code: int, message: Optional[str] = None):
        super().__init__(message or f"Upstream returned HTTP {status_code}")
        self.status_code = status_code


class RedirectRefused(ResolverError):
    """A media host redirected the relay to a target the SSRF guard rejects"""
    status_code = 403
    message_key = "error.private_ip"
