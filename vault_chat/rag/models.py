"""
Retrieval Data Model
--------------------
Chunks, scored search hits, web snippets and the combined context handed to
prompt assembly. Similarities are clamped to [0, 1] on construction.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Optional


class RagChunk(BaseModel):
    """A segment of a note indexed with an embedding and source metadata."""
    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    embedding: Optional[List[float]] = None

    @property
    def file_path(self) -> Optional[str]:
        return self.metadata.get("file_path")

    @property
    def section_title(self) -> Optional[str]:
        return self.metadata.get("section_title") or None


class SearchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    chunk: RagChunk
    similarity: float

    @field_validator("similarity")
    @classmethod
    def clamp_similarity(cls, v):
        return min(max(float(v), 0.0), 1.0)


class WebSnippet(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = ""
    url: str = ""
    content: str = ""


class RetrievalContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    chunks: List[SearchResult] = Field(default_factory=list)
    web_snippets: List[WebSnippet] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.chunks and not self.web_snippets
