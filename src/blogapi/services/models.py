"""
Pydantic models for blog API entities.

Wire field names are camelCase; attributes are snake_case and the models
accept either form on input.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ApiModel(BaseModel):
    """Base model for API entities."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> Dict[str, Any]:
        """Serialize with the API's field names."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Blog(ApiModel):
    """A blog post as listed or read."""
    id: str
    slug: str
    title: str
    excerpt: str = ""
    author: str = ""
    published_date: str = Field(default="", alias="publishedDate")
    read_time: str = Field(default="", alias="readTime")
    tags: List[str] = Field(default_factory=list)
    thumbnail: str = ""
    content: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def coerce_id(cls, data: Any) -> Any:
        # Some endpoints return Mongo-style "_id" only
        if isinstance(data, dict) and "id" not in data and "_id" in data:
            data = {**data, "id": str(data["_id"])}
        return data


class User(ApiModel):
    """An account profile."""
    user_id: str = Field(alias="_id")
    id: Optional[str] = None
    email: str
    name: str
    avatar: Optional[str] = None
    role: Optional[str] = None
    is_verified: Optional[bool] = Field(default=None, alias="isVerified")

    @model_validator(mode="before")
    @classmethod
    def fill_ids(cls, data: Any) -> Any:
        """Either of ``_id`` / ``id`` is enough; the other mirrors it."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "_id" not in data and "user_id" not in data and data.get("id"):
            data["_id"] = data["id"]
        if not data.get("id"):
            data["id"] = data.get("_id") or data.get("user_id")
        return data


class TokenData(ApiModel):
    """Access/refresh token pair as returned by the auth endpoints."""
    access_token: str = Field(alias="accessToken")
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")
    expires_in: Optional[int] = Field(default=None, alias="expiresIn")


class AuthResponse(TokenData):
    """Login/registration result: the user plus its tokens."""
    user: User

    def token_data(self) -> TokenData:
        return TokenData(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            expires_in=self.expires_in,
        )
