from .internal import FetchAttempt, PartialMedia, RelayRequest
from .request import ResolveRequest
from .response import ErrorResponse, MediaDescriptor, ResolveResponse

__all__ = [
    "ErrorResponse",
    "FetchAttempt",
    "MediaDescriptor",
    "PartialMedia",
    "RelayRequest",
    "ResolveRequest",
    "ResolveResponse",
]
