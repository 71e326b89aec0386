from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, text

from comicshelf.database import Base


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    avatar_url = Column(String, nullable=True)
    role = Column(String, default="user", server_default="user", nullable=False)  # user, group or admin

    created_at = Column(
        DateTime(timezone=True), default=_now_utc, server_default=text("CURRENT_TIMESTAMP")
    )
