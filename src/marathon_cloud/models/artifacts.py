"""
Models for the remote artifact tree listing.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, TypeAdapter


class ArtifactEntry(BaseModel):
    """One child of a remote artifact directory."""

    model_config = ConfigDict(extra="ignore")

    id: str
    is_file: bool
    name: str = ""


ArtifactListing = TypeAdapter(list[ArtifactEntry])
