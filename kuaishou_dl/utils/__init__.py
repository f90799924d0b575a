from .hash import hash_stable
from .headers import build_headers

__all__ = ["build_headers", "hash_stable"]
