import hashlib


def hash_stable(*parts: str, length: int = 16) -> str:
    """Short SHA-256 digest of the joined parts; used to build Redis keys"""
    digest = hashlib.sha256(":".join(parts).encode("utf-8"))
    return digest.hexdigest()[:length]
