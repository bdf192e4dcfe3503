"""
Response models for the imageset API.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ImageSet(BaseModel):
    """Images a deployment of one release depends on"""
    images: List[str] = Field(default_factory=list)


class TagList(BaseModel):
    """Tag list of the tracked repository"""
    name: str
    tags: List[str] = Field(default_factory=list)


class DigestSnapshot(BaseModel):
    """Current tag→digest index, for diagnostics"""
    digests: Dict[str, str] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    status: str
    indexed_tags: int
    last_refresh: Optional[datetime] = None
