"""
Bookshelf API — Book Request/Response Schemas
==============================================

What:  The API contract for the books resource.
Why:   Separate from the ORM model so the API can change independently of
       the table and never leaks internal columns.

Three input shapes, one per write verb:
    BookCreate   (POST)   title and author required, the rest optional
    BookReplace  (PUT)    full representation; every field must be sent,
                          nullable ones explicitly as null
    BookUpdate   (PATCH)  partial; only the fields present are changed
"""

import re
import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from bookshelf.models.timestamps import as_utc

_ISBN10 = re.compile(r"^\d{9}[\dX]$")
_ISBN13 = re.compile(r"^\d{13}$")


def normalize_isbn(value: Optional[str]) -> Optional[str]:
    """Strip hyphens/spaces and upper-case; None and "" both mean "no ISBN"."""
    if value is None:
        return None
    cleaned = re.sub(r"[\s-]", "", value).upper()
    if not cleaned:
        return None
    if not (_ISBN10.match(cleaned) or _ISBN13.match(cleaned)):
        raise ValueError(
            "ISBN must be 10 digits (the last may be X) or 13 digits, "
            "ignoring hyphens and spaces"
        )
    return cleaned


def check_published_year(value: Optional[int]) -> Optional[int]:
    if value is None:
        return None
    latest = datetime.now(timezone.utc).year + 1
    if value < 0 or value > latest:
        raise ValueError(f"published_year must be between 0 and {latest}")
    return value


class BookCreate(BaseModel):
    """Body of POST /api/v1/books."""
    title: str = Field(min_length=1, max_length=255, description="Book title")
    author: str = Field(min_length=1, max_length=255, description="Author name")
    isbn: Optional[str] = Field(default=None, description="ISBN-10 or ISBN-13, hyphens allowed")
    published_year: Optional[int] = Field(default=None, description="Year of first publication")

    model_config = {"str_strip_whitespace": True}

    @field_validator("isbn")
    @classmethod
    def validate_isbn(cls, v: Optional[str]) -> Optional[str]:
        return normalize_isbn(v)

    @field_validator("published_year")
    @classmethod
    def validate_year(cls, v: Optional[int]) -> Optional[int]:
        return check_published_year(v)


class BookReplace(BaseModel):
    """Body of PUT /api/v1/books/{id} — the complete new representation."""
    title: str = Field(min_length=1, max_length=255)
    author: str = Field(min_length=1, max_length=255)
    isbn: Optional[str] = Field(..., description="Send null to clear")
    published_year: Optional[int] = Field(..., description="Send null to clear")

    model_config = {"str_strip_whitespace": True}

    @field_validator("isbn")
    @classmethod
    def validate_isbn(cls, v: Optional[str]) -> Optional[str]:
        return normalize_isbn(v)

    @field_validator("published_year")
    @classmethod
    def validate_year(cls, v: Optional[int]) -> Optional[int]:
        return check_published_year(v)


class BookUpdate(BaseModel):
    """
    Body of PATCH /api/v1/books/{id}.

    Only fields present in the JSON are applied (model_dump(exclude_unset=True)).
    title and author may be omitted but not nulled: a book always has both.
    """
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    author: Optional[str] = Field(default=None, min_length=1, max_length=255)
    isbn: Optional[str] = None
    published_year: Optional[int] = None

    model_config = {"str_strip_whitespace": True}

    @field_validator("isbn")
    @classmethod
    def validate_isbn(cls, v: Optional[str]) -> Optional[str]:
        return normalize_isbn(v)

    @field_validator("published_year")
    @classmethod
    def validate_year(cls, v: Optional[int]) -> Optional[int]:
        return check_published_year(v)

    @model_validator(mode="after")
    def check_not_empty(self) -> "BookUpdate":
        if not self.model_fields_set:
            raise ValueError("PATCH body must contain at least one field")
        for name in ("title", "author"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class BookResponse(BaseModel):
    """Full representation of a book, returned by every books endpoint."""
    id: uuid.UUID
    title: str
    author: str
    isbn: Optional[str] = None
    published_year: Optional[int] = None
    owner_id: uuid.UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return as_utc(v)
