from __future__ import annotations

from pydantic import BaseModel, Field


class VideoSummary(BaseModel):
    """Public view of a catalog entry; the upstream reference is never part of it."""

    id: str
    title: str
    description: str = ""
    thumbnail: str = ""
    duration: str = Field("", description="mm:ss")
    year: str = ""
