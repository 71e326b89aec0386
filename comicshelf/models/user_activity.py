from datetime import datetime, timezone

from sqlalchemy import Column, Integer, Float, DateTime, ForeignKey, UniqueConstraint, text

from comicshelf.database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class UserHistory(Base):
    __tablename__ = "user_history"
    __table_args__ = (
        UniqueConstraint("user_id", "comic_id", name="uq_user_history_user_comic"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    comic_id = Column(Integer, ForeignKey("comics.id", ondelete="CASCADE"), nullable=False)
    chapter_number = Column(Float, nullable=True)
    read_at = Column(
        DateTime(timezone=True), default=_now_utc, server_default=text("CURRENT_TIMESTAMP"), index=True
    )


class UserFollow(Base):
    __tablename__ = "user_follows"
    __table_args__ = (
        UniqueConstraint("user_id", "comic_id", name="uq_user_follows_user_comic"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    comic_id = Column(Integer, ForeignKey("comics.id", ondelete="CASCADE"), nullable=False)
    followed_at = Column(DateTime(timezone=True), default=_now_utc, server_default=text("CURRENT_TIMESTAMP"))
