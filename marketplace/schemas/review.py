from pydantic import BaseModel, Field, field_validator
from typing import Any, Optional
from datetime import datetime
import bleach


def _sanitize(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    return bleach.clean(value, tags=[], attributes={}, strip=True).strip()


class ReviewCreate(BaseModel):
    # Passed through uncoerced; the review ledger validates both
    item_id: Any = Field(...)
    username: str = Field(..., min_length=1)
    rating: Any = Field(..., description="Integer rating from 1 to 10")
    comment: Optional[str] = Field("", max_length=1000)

    @field_validator("comment")
    @classmethod
    def sanitize_comment(cls, value: Optional[str]) -> Optional[str]:
        return _sanitize(value)


class ReviewUpdate(BaseModel):
    rating: Optional[Any] = Field(None, description="Integer rating from 1 to 10")
    comment: Optional[str] = Field(None, max_length=1000)

    @field_validator("comment")
    @classmethod
    def sanitize_comment(cls, value: Optional[str]) -> Optional[str]:
        return _sanitize(value)


class ReviewResponse(BaseModel):
    id: str
    item_id: int
    item_name: str
    username: str
    rating: int
    comment: str
    created_at: datetime
