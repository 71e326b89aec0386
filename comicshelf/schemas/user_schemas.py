from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, EmailStr, Field, field_validator


class UserCreate(BaseModel):
    username: str
    email: EmailStr
    password: str

    @field_validator("username")
    @classmethod
    def username_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Username is required")
        return v

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str) -> str:
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters")
        return v


class UserLogin(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: int
    username: str
    email: str
    avatar_url: Optional[str] = None
    role: str
    created_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True
    }


class AdminLogin(BaseModel):
    username: str
    password: str


# ---------- history / follows ----------

class HistoryAdd(BaseModel):
    comic_id: int = Field(validation_alias=AliasChoices("comic_id", "comicId"))
    chapter_number: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("chapter_number", "chapterNumber")
    )
    chapter_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("chapter_id", "chapterId"))


class SyncHistoryItem(BaseModel):
    comic_id: int = Field(validation_alias=AliasChoices("comicId", "comic_id"))
    chapter_number: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("chapterNumber", "chapter_number")
    )


class SyncFollowItem(BaseModel):
    comic_id: int = Field(validation_alias=AliasChoices("id", "comicId", "comic_id"))


class SyncRequest(BaseModel):
    history: List[SyncHistoryItem] = []
    follows: List[SyncFollowItem] = []
