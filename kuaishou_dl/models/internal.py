from dataclasses import dataclass, field
from typing import Dict, Literal

from pydantic import BaseModel

from kuaishou_dl.config.settings import config

MediaKind = Literal["video", "audio"]

CONTENT_TYPES = {
    "video": "video/mp4",
    "audio": "audio/mp4",
}


@dataclass(frozen=True)
class PartialMedia:
    """Accumulator folded through the extraction cascade"""
    title: str = ""
    author: str = ""
    thumbnail: str = ""
    video_url: str = ""
    audio_url: str = ""


@dataclass
class FetchAttempt:
    """One hop of a redirect-following page fetch"""
    url: str
    hop: int
    headers: Dict[str, str] = field(default_factory=dict)


class RelayRequest(BaseModel):
    """Internal relay intent (separated from HTTP concerns)"""
    url: str
    kind: MediaKind
    filename: str
    content_type: str

    @classmethod
    def for_kind(cls, url: str, kind: str) -> "RelayRequest":
        """Anything other than "audio" is relayed as video."""
        media_kind = "audio" if kind == "audio" else "video"
        filename = config.relay.audio_filename if media_kind == "audio" else config.relay.video_filename
        return cls(
            url=url,
            kind=media_kind,
            filename=filename,
            content_type=CONTENT_TYPES[media_kind],
        )
