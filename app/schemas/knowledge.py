from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, constr


class ArticleCreateRequest(BaseModel):
    title: constr(min_length=1, max_length=255) = Field(..., examples=["How to connect to the VPN"])  # type: ignore[valid-type]
    content: constr(min_length=1) = Field(..., examples=["Open the VPN client and..."])  # type: ignore[valid-type]
    category: Optional[constr(max_length=100)] = Field(None, examples=["network"])  # type: ignore[valid-type]
    is_public: bool = True


class ArticleUpdateRequest(BaseModel):
    title: Optional[constr(max_length=255)] = None  # type: ignore[valid-type]
    content: Optional[str] = None
    category: Optional[constr(max_length=100)] = None  # type: ignore[valid-type]
    is_public: Optional[bool] = None


class ArticleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    content: str
    category: Optional[str] = None
    is_public: bool
    created_by_id: Optional[int] = None
    views_count: int
    created_at: datetime
    updated_at: datetime
