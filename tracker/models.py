"""
Pydantic models for tracked manga and MangaDex API payloads.
Implements the persisted tracking record and the tagged API envelopes.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Set, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

# Title languages in order of preference
TITLE_LANGUAGES = ("en", "ja-ro", "zh-ro")


class TrackedManga(BaseModel):
    """
    A manga tracked by one or more channels, as stored in MongoDB.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id", description="MangaDex manga id")
    title: str = Field(..., description="Best-known display title")
    latest_chapter_id: Optional[str] = Field(
        default=None, description="Latest chapter subscribers were told about"
    )
    baseline_established: bool = Field(
        default=False, description="Whether latest_chapter_id holds a recorded baseline"
    )
    channels: Set[int] = Field(default_factory=set, description="Ids of the channels tracking this manga")

    @field_validator('id')
    @classmethod
    def validate_id(cls, v):
        """Ensure the id is not blank."""
        if not v or not v.strip():
            raise ValueError('id cannot be blank')
        return v

    def is_tracked_by(self, channel_id: int) -> bool:
        return channel_id in self.channels

    def to_document(self) -> Dict[str, Any]:
        """Convert to a MongoDB document."""
        document = self.model_dump(by_alias=True)
        document["channels"] = sorted(self.channels)
        return document

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "TrackedManga":
        """Build from a MongoDB document."""
        return cls.model_validate(document)


class ApiError(BaseModel):
    """An error object returned by the MangaDex API."""
    id: str = Field(default="")
    status: int = Field(default=0)
    title: str = Field(default="")
    detail: Optional[str] = Field(default=None)


class MangaAttributes(BaseModel):
    title: Dict[str, str] = Field(default_factory=dict)

    def english_title(self) -> Optional[str]:
        """
        Get the English title, falling back to the romanized Japanese or
        Chinese title. Returns None when none of them is present.
        """
        for language in TITLE_LANGUAGES:
            title = self.title.get(language)
            if title:
                return title
        return None


class MangaEntity(BaseModel):
    id: str
    attributes: MangaAttributes = Field(default_factory=MangaAttributes)


class ChapterAttributes(BaseModel):
    """Descriptive fields of a chapter; every field may be missing upstream."""
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    volume: Optional[str] = None
    chapter: Optional[str] = None
    pages: int = 0
    translated_language: Optional[str] = Field(default=None, alias="translatedLanguage")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    publish_at: Optional[datetime] = Field(default=None, alias="publishAt")
    readable_at: Optional[datetime] = Field(default=None, alias="readableAt")


class ChapterEntity(BaseModel):
    id: str
    attributes: ChapterAttributes = Field(default_factory=ChapterAttributes)

    def url(self, site_root: str = "https://mangadex.org") -> str:
        """Direct link to this chapter on the MangaDex site."""
        return f"{site_root.rstrip('/')}/chapter/{self.id}"


class ErrorResponse(BaseModel):
    result: Literal["error"]
    errors: List[ApiError] = Field(default_factory=list)


class MangaResponse(BaseModel):
    result: Literal["ok"]
    data: MangaEntity


class ChapterListResponse(BaseModel):
    result: Literal["ok"]
    data: List[ChapterEntity] = Field(default_factory=list)


# Envelopes are discriminated on the "result" field
MangaEnvelope = TypeAdapter(
    Annotated[Union[MangaResponse, ErrorResponse], Field(discriminator="result")]
)
ChapterListEnvelope = TypeAdapter(
    Annotated[Union[ChapterListResponse, ErrorResponse], Field(discriminator="result")]
)
