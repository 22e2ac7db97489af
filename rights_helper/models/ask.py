"""Request contract for the question-answering backend."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Language(str, Enum):
    ENGLISH = "English"
    SPANISH = "Spanish"
    RUSSIAN = "Russian"


DEFAULT_LANGUAGE = Language.ENGLISH.value


class AskRequest(BaseModel):
    """Body of ``POST /ask``.

    ``language`` is passed through as-is; the backend decides what to do with
    tags it does not recognize.
    """

    model_config = ConfigDict(extra="forbid")

    query: str = Field(min_length=1)
    language: str = Field(min_length=1)

    @field_validator("query")
    @classmethod
    def validate_query(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("query must not be blank")
        return value

    def to_json_bytes(self) -> bytes:
        return self.model_dump_json().encode("utf-8")
