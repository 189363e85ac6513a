"""
Request bodies.

Every payload is wrapped in an envelope named after the entity
(``{"user": {...}}``, ``{"article": {...}}``, ``{"comment": {...}}``).
Validator messages are the short phrases surfaced to clients in the
``{"errors": {field: message}}`` body, so they read as the tail of a
sentence ("username is invalid").
"""
import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

USERNAME_RE = re.compile(r"^[a-zA-Z0-9]+$")
EMAIL_RE = re.compile(r"\S+@\S+\.\S+")

BLANK = "can't be blank"
INVALID = "is invalid"


def not_blank(value: str) -> str:
    if not value or not value.strip():
        raise ValueError(BLANK)
    return value


def normalize_username(value: str) -> str:
    value = not_blank(value).strip().lower()
    if not USERNAME_RE.match(value):
        raise ValueError(INVALID)
    return value


def normalize_email(value: str) -> str:
    value = not_blank(value).strip().lower()
    if not EMAIL_RE.fullmatch(value):
        raise ValueError(INVALID)
    return value


def clean_tags(value: list[str]) -> list[str]:
    return [tag.strip() for tag in value if tag.strip()]


# --- User ---

class UserRegistration(BaseModel):
    username: str = Field(max_length=100)
    email: str = Field(max_length=255)
    password: str

    @field_validator("username")
    @classmethod
    def check_username(cls, value: str) -> str:
        return normalize_username(value)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return not_blank(value)


class RegisterRequest(BaseModel):
    user: UserRegistration


class LoginCredentials(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return not_blank(value).strip().lower()

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return not_blank(value)


class LoginRequest(BaseModel):
    user: LoginCredentials


class UserUpdate(BaseModel):
    username: str | None = Field(None, max_length=100)
    email: str | None = Field(None, max_length=255)
    password: str | None = None
    bio: str | None = None
    image: str | None = Field(None, max_length=500)

    @field_validator("username")
    @classmethod
    def check_username(cls, value: str | None) -> str | None:
        return None if value is None else normalize_username(value)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str | None) -> str | None:
        return None if value is None else normalize_email(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str | None) -> str | None:
        return None if value is None else not_blank(value)


class UserUpdateRequest(BaseModel):
    user: UserUpdate


# --- Article ---

class ArticleCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(max_length=300)
    description: str = ""
    body: str
    tag_list: list[str] = Field(default_factory=list, alias="tagList")

    @field_validator("title", "body")
    @classmethod
    def check_text(cls, value: str) -> str:
        return not_blank(value)

    @field_validator("tag_list")
    @classmethod
    def check_tags(cls, value: list[str]) -> list[str]:
        return clean_tags(value)


class ArticleCreateRequest(BaseModel):
    article: ArticleCreate


class ArticleUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str | None = Field(None, max_length=300)
    description: str | None = None
    body: str | None = None
    tag_list: list[str] | None = Field(None, alias="tagList")

    @field_validator("title", "body")
    @classmethod
    def check_text(cls, value: str | None) -> str | None:
        return None if value is None else not_blank(value)

    @field_validator("tag_list")
    @classmethod
    def check_tags(cls, value: list[str] | None) -> list[str] | None:
        return None if value is None else clean_tags(value)


class ArticleUpdateRequest(BaseModel):
    article: ArticleUpdate


# --- Comment ---

class CommentCreate(BaseModel):
    body: str

    @field_validator("body")
    @classmethod
    def check_body(cls, value: str) -> str:
        return not_blank(value)


class CommentCreateRequest(BaseModel):
    comment: CommentCreate
