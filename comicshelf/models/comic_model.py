import enum
import json
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, Float, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship

from comicshelf.database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class ComicStatus(str, enum.Enum):
    ONGOING = "ongoing"
    COMPLETED = "completed"


class Comic(Base):
    __tablename__ = "comics"
    __table_args__ = (
        Index("idx_comics_views", "views"),
        Index("idx_comics_updated", "updated_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True)
    description = Column(Text, default="")
    cover_url = Column(String, default="")
    author = Column(String, default="")
    status = Column(String, default=ComicStatus.ONGOING.value, server_default=ComicStatus.ONGOING.value)

    # JSON array kept as text; genre lookups match against the serialized form
    genres = Column(Text, default="[]", server_default="[]")
    views = Column(Integer, default=0, server_default="0", nullable=False)

    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=_now_utc, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime(timezone=True), default=_now_utc, server_default=text("CURRENT_TIMESTAMP"))

    chapters = relationship(
        "Chapter",
        back_populates="comic",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def genre_list(self) -> list:
        try:
            value = json.loads(self.genres or "[]")
        except (TypeError, ValueError):
            return []
        return value if isinstance(value, list) else []


class Chapter(Base):
    __tablename__ = "chapters"
    __table_args__ = (
        Index("idx_chapters_comic_number", "comic_id", "chapter_number"),
        Index("idx_chapters_comic_created", "comic_id", "created_at"),
        Index("idx_chapters_created", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    comic_id = Column(Integer, ForeignKey("comics.id", ondelete="CASCADE"), nullable=False, index=True)
    chapter_number = Column(Float, nullable=False)
    title = Column(String, default="")

    # list of server groups, see comicshelf.utils.image_urls
    image_urls = Column(Text, nullable=False, default="[]", server_default="[]")
    created_at = Column(DateTime(timezone=True), default=_now_utc, server_default=text("CURRENT_TIMESTAMP"))

    comic = relationship("Comic", back_populates="chapters")
