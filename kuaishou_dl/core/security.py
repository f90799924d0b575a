import asyncio
import ipaddress
import socket
from contextlib import suppress
from enum import Enum, auto
from typing import List, Optional, Union
from urllib.parse import urlsplit

from redis.exceptions import RedisError

from kuaishou_dl.config.settings import config
from kuaishou_dl.infra.redis import get_redis
from kuaishou_dl.utils.hash import hash_stable

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

ALLOWED_SCHEMES = ("http", "https")
VERDICT_TTL = 300


class UrlValidationResult(Enum):
    """Verdict for a relay target; validation never raises"""
    OK = auto()
    BLOCKED = auto()
    INVALID = auto()


def is_platform_host(hostname: str) -> bool:
    """True when hostname is a configured platform domain or one of its subdomains."""
    hostname = hostname.lower().rstrip(".")
    return any(
        hostname == domain or hostname.endswith("." + domain)
        for domain in (d.lower() for d in config.resolver.platform_domains)
    )


def is_forbidden_address(ip: IPAddress) -> bool:
    if ip.is_link_local or ip.is_multicast:
        return True
    if ip.is_loopback:
        return not config.security.allow_localhost
    if ip.is_private:
        return not config.security.allow_private_ips
    return False


async def resolve_host(hostname: str) -> Optional[List[IPAddress]]:
    """All addresses for hostname, or None when DNS has no answer"""
    try:
        infos = await asyncio.to_thread(socket.getaddrinfo, hostname, None)
    except socket.gaierror:
        return None
    # Scoped IPv6 addresses carry a %zone suffix
    return [ipaddress.ip_address(info[4][0].split("%", 1)[0]) for info in infos]


class SecurityValidator:
    """
    Relay targets must be plain http(s) URLs that do not resolve to
    loopback, private, link-local or multicast addresses.
    Verdicts are cached per host in Redis when it is available.
    """

    @staticmethod
    async def _cached_verdict(cache_key: str) -> Optional[UrlValidationResult]:
        redis = get_redis()
        if redis is None:
            return None
        try:
            cached = await redis.get(cache_key)
        except RedisError:
            return None
        return {"ok": UrlValidationResult.OK, "blocked": UrlValidationResult.BLOCKED}.get(cached)

    @staticmethod
    async def _store_verdict(cache_key: str, verdict: UrlValidationResult) -> None:
        redis = get_redis()
        if redis is None:
            return
        with suppress(RedisError):
            await redis.setex(cache_key, VERDICT_TTL, verdict.name.lower())

    @staticmethod
    async def validate_url(url: str) -> UrlValidationResult:
        try:
            parts = urlsplit(url)
            hostname = parts.hostname
        except ValueError:
            return UrlValidationResult.INVALID

        if parts.scheme not in ALLOWED_SCHEMES or not hostname:
            return UrlValidationResult.INVALID

        if not config.security.enable_ssrf_protection:
            return UrlValidationResult.OK

        cache_key = f"ssrf:{hash_stable(hostname)}"
        cached = await SecurityValidator._cached_verdict(cache_key)
        if cached is not None:
            return cached

        try:
            addresses = await resolve_host(hostname)
        except ValueError:
            return UrlValidationResult.INVALID
        if addresses is None:
            # Unresolvable hosts fail later as a network error
            return UrlValidationResult.OK

        if any(is_forbidden_address(ip) for ip in addresses):
            verdict = UrlValidationResult.BLOCKED
        else:
            verdict = UrlValidationResult.OK

        await SecurityValidator._store_verdict(cache_key, verdict)
        return verdict
