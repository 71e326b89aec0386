from typing import List, Optional, Union

from pydantic import BaseModel, field_validator

from comicshelf.models.comic_model import ComicStatus


class ComicCreate(BaseModel):
    title: str
    description: Optional[str] = ""
    cover_url: Optional[str] = ""
    author: Optional[str] = ""
    status: Optional[ComicStatus] = ComicStatus.ONGOING
    genres: List[str] = []

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Title is required")
        return v.strip()


class ComicUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    cover_url: Optional[str] = None
    author: Optional[str] = None
    status: Optional[ComicStatus] = None
    genres: Optional[List[str]] = None


class ServerGroupIn(BaseModel):
    server_name: str = "Server 1"
    image_urls: List[str] = []


# Either the legacy flat list of URLs or a list of server groups
ImageUrlsIn = Union[List[str], List[ServerGroupIn]]


class ChapterCreate(BaseModel):
    comic_id: int
    chapter_number: float
    title: Optional[str] = ""
    image_urls: ImageUrlsIn = []


class ChapterUpdate(BaseModel):
    chapter_number: Optional[float] = None
    title: Optional[str] = None
    image_urls: Optional[ImageUrlsIn] = None


class HuggingFaceFetch(BaseModel):
    folder_url: str
