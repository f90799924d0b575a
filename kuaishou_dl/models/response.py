from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MediaDescriptor(BaseModel):
    """Resolved media for one video page"""
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1)
    author: str = Field(..., min_length=1)
    thumbnail: str = ""
    video_url: str = Field(..., alias="videoUrl", min_length=1)
    audio_url: Optional[str] = Field(None, alias="audioUrl")
    quality: str
    file_size: str = Field("", alias="fileSize")


class ResolveResponse(BaseModel):
    """Envelope returned by the resolve endpoint"""
    success: bool
    data: Optional[MediaDescriptor] = None
    error: Optional[str] = None

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class ErrorResponse(BaseModel):
    error: str
