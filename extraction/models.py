"""Pydantic models for structure extraction."""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional

UNKNOWN_TITLE = "Unknown"
UNKNOWN_DESCRIPTION = "No description"
UNKNOWN_LANGUAGE = "Unknown"


class ParsedVerse(BaseModel):
    """One verse recovered by the LLM."""
    model_config = ConfigDict(populate_by_name=True)

    number: int
    original_text: Optional[str] = Field(default="", alias="originalText")
    translation: Optional[str] = ""

    @field_validator("original_text", "translation", mode="before")
    @classmethod
    def null_to_empty(cls, value):
        return "" if value is None else value


class ParsedChapter(BaseModel):
    """One chapter recovered by the LLM."""
    number: int
    title: Optional[str] = ""
    verses: List[ParsedVerse] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def null_title_to_empty(cls, value):
        return "" if value is None else value

    @field_validator("verses", mode="before")
    @classmethod
    def null_verses_to_empty(cls, value):
        return [] if value is None else value


class ParsedDocument(BaseModel):
    """Structured result of one extraction unit, or of a whole merge."""
    title: Optional[str] = None
    description: Optional[str] = None
    language: Optional[str] = None
    chapters: List[ParsedChapter] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "ParsedDocument":
        """Placeholder used when a whole-document parse yields nothing."""
        return cls(
            title=UNKNOWN_TITLE,
            description=UNKNOWN_DESCRIPTION,
            language=UNKNOWN_LANGUAGE,
            chapters=[]
        )

    @property
    def chapter_count(self) -> int:
        return len(self.chapters)

    @property
    def verse_count(self) -> int:
        return sum(len(chapter.verses) for chapter in self.chapters)
