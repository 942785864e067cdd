"""
Request payloads (the validators) and response envelopes.

Every request body is wrapped under its entity key, e.g.
``{"article": {"title": ...}}``.  Field limits come from settings so the
constraint and its error message change together.
"""
from typing import Annotated

from pydantic import BaseModel, EmailStr, Field

from conduit.config import settings

_USERNAME_PATTERN = r"^[A-Za-z0-9]+$"

# Matches the width of the tags.name column.
TagName = Annotated[str, Field(max_length=100)]


# --- User ---

class NewUser(BaseModel):
    username: str = Field(
        min_length=settings.USERNAME_MIN_LENGTH, max_length=255, pattern=_USERNAME_PATTERN
    )
    email: EmailStr
    password: str = Field(min_length=settings.PASSWORD_MIN_LENGTH, max_length=255)


class NewUserRequest(BaseModel):
    user: NewUser


class LoginUser(BaseModel):
    email: EmailStr
    password: str = Field(min_length=settings.PASSWORD_MIN_LENGTH, max_length=255)


class LoginUserRequest(BaseModel):
    user: LoginUser


class UpdateUser(BaseModel):
    username: str | None = Field(
        None, min_length=settings.USERNAME_MIN_LENGTH, max_length=255, pattern=_USERNAME_PATTERN
    )
    email: EmailStr | None = None
    password: str | None = Field(None, min_length=settings.PASSWORD_MIN_LENGTH, max_length=255)
    bio: str | None = Field(None, max_length=settings.BIO_MAX_LENGTH)
    image: str | None = Field(None, max_length=2048)


class UpdateUserRequest(BaseModel):
    user: UpdateUser


class UserResponseBody(BaseModel):
    email: str
    token: str
    username: str
    bio: str | None = None
    image: str | None = None


class UserResponse(BaseModel):
    user: UserResponseBody


# --- Profile ---

class Profile(BaseModel):
    username: str
    bio: str | None = None
    image: str | None = None
    following: bool = False


class ProfileResponse(BaseModel):
    profile: Profile


# --- Article ---

class NewArticle(BaseModel):
    title: str = Field(min_length=settings.ARTICLE_TITLE_MIN_LENGTH, max_length=300)
    description: str = Field(max_length=settings.ARTICLE_TEXT_MAX_LENGTH)
    body: str = Field(max_length=settings.ARTICLE_TEXT_MAX_LENGTH)
    tagList: list[TagName] = []


class NewArticleRequest(BaseModel):
    article: NewArticle


class UpdateArticle(BaseModel):
    title: str | None = Field(None, min_length=settings.ARTICLE_TITLE_MIN_LENGTH, max_length=300)
    description: str | None = Field(None, max_length=settings.ARTICLE_TEXT_MAX_LENGTH)
    body: str | None = Field(None, max_length=settings.ARTICLE_TEXT_MAX_LENGTH)
    tagList: list[TagName] | None = None


class UpdateArticleRequest(BaseModel):
    article: UpdateArticle


class ArticleBody(BaseModel):
    slug: str
    title: str
    description: str
    body: str
    tagList: list[str] = []
    createdAt: str
    updatedAt: str
    favorited: bool = False
    favoritesCount: int = 0
    author: Profile


class ArticleResponse(BaseModel):
    article: ArticleBody


class ArticleListResponse(BaseModel):
    articles: list[ArticleBody]
    articlesCount: int


# --- Comment ---

class NewComment(BaseModel):
    body: str = Field(min_length=1, max_length=settings.COMMENT_BODY_MAX_LENGTH)


class NewCommentRequest(BaseModel):
    comment: NewComment


class CommentBody(BaseModel):
    id: int
    createdAt: str
    updatedAt: str
    body: str
    author: Profile


class CommentResponse(BaseModel):
    comment: CommentBody


class CommentListResponse(BaseModel):
    comments: list[CommentBody]


# --- Tag ---

class TagListResponse(BaseModel):
    tags: list[str]
