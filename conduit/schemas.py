from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for payloads exchanged in camelCase (``tagList``, ``favoritesCount``)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _check_tags(tags: list[str] | None) -> list[str] | None:
    # Tags are stored comma-joined, so a comma inside a tag would split it.
    if tags is None:
        return None
    cleaned = [t.strip() for t in tags]
    for tag in cleaned:
        if not tag:
            raise ValueError("tags must not be empty")
        if "," in tag:
            raise ValueError("tags must not contain commas")
    return cleaned


# --- User ---

class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class UserLogin(BaseModel):
    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class UserUpdate(BaseModel):
    """Fields a user may change on their own account; anything else is ignored."""

    username: str | None = Field(None, min_length=1, max_length=100)
    email: str | None = Field(None, min_length=3, max_length=255)
    password: str | None = Field(None, min_length=1, max_length=128)
    bio: str | None = None
    image: str | None = Field(None, max_length=500)


class UserCreateRequest(BaseModel):
    user: UserCreate


class UserLoginRequest(BaseModel):
    user: UserLogin


class UserUpdateRequest(BaseModel):
    user: UserUpdate


class UserResponse(BaseModel):
    email: str
    username: str
    bio: str | None = None
    image: str | None = None
    token: str
    model_config = ConfigDict(from_attributes=True)


class UserEnvelope(BaseModel):
    user: UserResponse


# --- Article ---

class ProfileResponse(BaseModel):
    username: str
    bio: str | None = None
    image: str | None = None
    model_config = ConfigDict(from_attributes=True)


class ArticleCreate(CamelModel):
    title: str = Field(min_length=1, max_length=300)
    description: str = Field(min_length=1, max_length=1000)
    body: str = Field(min_length=1)
    tag_list: list[str] | None = None

    @field_validator("tag_list")
    @classmethod
    def validate_tags(cls, value: list[str] | None) -> list[str] | None:
        return _check_tags(value)


class ArticleUpdate(CamelModel):
    """
    Allow-listed patch for an article.  Only fields present in the request
    body are applied (``model_dump(exclude_unset=True)``); slug, author and
    counters can never be overwritten through this payload.
    """

    title: str | None = Field(None, min_length=1, max_length=300)
    description: str | None = Field(None, min_length=1, max_length=1000)
    body: str | None = Field(None, min_length=1)
    tag_list: list[str] | None = None

    @field_validator("tag_list")
    @classmethod
    def validate_tags(cls, value: list[str] | None) -> list[str] | None:
        return _check_tags(value)


class ArticleCreateRequest(BaseModel):
    article: ArticleCreate


class ArticleUpdateRequest(BaseModel):
    article: ArticleUpdate


class ArticleResponse(CamelModel):
    slug: str
    title: str
    description: str
    body: str
    tag_list: list[str] = []
    created_at: datetime
    updated_at: datetime | None = None
    favorited: bool = False
    favorites_count: int = 0
    author: ProfileResponse
    model_config = ConfigDict(from_attributes=True)


class ArticleEnvelope(BaseModel):
    article: ArticleResponse


class ArticleListResponse(CamelModel):
    articles: list[ArticleResponse]
    articles_count: int


class ArticleDeleteResponse(BaseModel):
    slug: str
    deleted: bool = True


# --- Metrics ---

class MetricsResponse(BaseModel):
    total_articles: int
    total_users: int
    total_favorites: int
    avg_favorites_per_article: float
    cache_info: dict = {}
