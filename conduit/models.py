from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from conduit.database import Base


class TagList(TypeDecorator):
    """
    Ordered list of tag strings persisted as a single comma-joined column.

    Keeping the serialized form in one column is what allows the ``tag``
    filter to run as a plain substring ``LIKE`` against the whole list.
    Comparisons (``contains``/``like``) are typed as ``Text`` so the
    right-hand side is bound as a raw pattern, not re-serialized.
    """

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, str):
            return value
        return ",".join(value)

    def process_result_value(self, value, dialect):
        if not value:
            return []
        return value.split(",")

    def coerce_compared_value(self, op, value):
        return Text()


# ---------------------------------------------------------------------------
# Association table: User <-> Article favorites (many-to-many)
# ---------------------------------------------------------------------------
user_favorites = Table(
    "user_favorites",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("article_id", Integer, ForeignKey("articles.id", ondelete="CASCADE"), primary_key=True),
    # Reverse lookup: "who favorited this article" and cascade deletes.
    Index("ix_user_favorites_article_id", "article_id"),
)


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships: lazy="noload" enforces explicit loading in services
    articles: Mapped[List["Article"]] = relationship(
        "Article", back_populates="author", lazy="noload"
    )
    favorites: Mapped[List["Article"]] = relationship(
        "Article", secondary=user_favorites, back_populates="favorited_by", lazy="noload"
    )


# ---------------------------------------------------------------------------
# Article
# ---------------------------------------------------------------------------
class Article(Base):
    __tablename__ = "articles"

    __table_args__ = (
        # Author feed in listing order
        Index("ix_articles_author_id_created_at", "author_id", "created_at"),
        CheckConstraint("favorites_count >= 0", name="ck_articles_favorites_count_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(350), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(String(1000), nullable=False, default="")
    body: Mapped[str] = mapped_column(Text, nullable=False)
    tag_list: Mapped[List[str]] = mapped_column(TagList, nullable=False, default=list)
    favorites_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Foreign key
    author_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Relationships: all lazy="noload"; use joinedload/selectinload in services
    author: Mapped["User"] = relationship("User", back_populates="articles", lazy="noload")
    favorited_by: Mapped[List["User"]] = relationship(
        "User", secondary=user_favorites, back_populates="favorites", lazy="noload"
    )
