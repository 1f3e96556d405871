"""News listings with English translations."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy import DateTime, Integer, String, Text, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base, RecordNotFound, StorageDb

logger = logging.getLogger(__name__)

Translator = Callable[[str], str]

_SAMPLE_TITLE = "Обновление тарифов"
_SAMPLE_SHORT = "Мы характерно обновили наши тарифы на услуги"
_SAMPLE_FULL = (
    "С нашими новыми тарифами вы получите доступ к еще большему функционалу и удобству. "
    "Наши услуги стали более доступными и гибкими, чтобы удовлетворить ваши потребности. "
    "Переходите на новые тарифы и погрузитесь в мир бесконечных возможностей, "
    "предлагаемых нами для вас!"
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _translate(translate: Translator, text: str) -> str:
    try:
        return translate(text)
    except Exception as exc:  # a failed translation leaves the field empty
        logger.warning("failed to translate: %s", exc)
        return ""


class NewsListing(Base):
    """A news item in Russian with its English version."""

    __tablename__ = "news_listings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slug: Mapped[str] = mapped_column(String, default="")
    full_title: Mapped[str] = mapped_column(String, default="")
    short_desc: Mapped[str] = mapped_column(Text, default="")
    full_desc: Mapped[str] = mapped_column(Text, default="")
    full_title_en: Mapped[str] = mapped_column(String, default="")
    full_desc_en: Mapped[str] = mapped_column(Text, default="")
    short_desc_en: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)

    def translate_to_english(self, translate: Translator) -> "NewsListing":
        """Fill the English fields using ``translate`` (Russian to English).

        A field whose translation fails is left empty.
        """
        self.full_title_en = _translate(translate, self.full_title or "")
        self.short_desc_en = _translate(translate, self.short_desc or "")
        self.full_desc_en = _translate(translate, self.full_desc or "")
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "slug": self.slug,
            "full_title": self.full_title,
            "short_desc": self.short_desc,
            "full_desc": self.full_desc,
            "full_title_en": self.full_title_en,
            "full_desc_en": self.full_desc_en,
            "short_desc_en": self.short_desc_en,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class NewsRepository:
    """Reads and creates news listings."""

    def __init__(self, db: StorageDb) -> None:
        self.db = db

    def get_all(self) -> list[NewsListing]:
        """All news, newest first; an empty list on database errors."""
        stmt = select(NewsListing).order_by(NewsListing.created_at.desc())
        try:
            with self.db.session() as session:
                return list(session.scalars(stmt).all())
        except SQLAlchemyError as exc:
            logger.warning("fetching news failed: %s", exc)
            return []

    def get_by_slug(self, slug: str) -> NewsListing:
        stmt = select(NewsListing).where(NewsListing.slug == slug).limit(1)
        with self.db.session() as session:
            news = session.scalars(stmt).first()
        if news is None:
            raise RecordNotFound(f"news {slug!r} not found")
        return news

    def create_sample(self, translate: Translator) -> NewsListing:
        """Store a tariff-update announcement translated to English."""
        stamp = str(datetime.now())
        news = NewsListing(
            slug=str(uuid.uuid4()),
            full_title=stamp + _SAMPLE_TITLE,
            short_desc=stamp + _SAMPLE_SHORT,
            full_desc=stamp + _SAMPLE_FULL,
            created_at=_now(),
        )
        news.translate_to_english(translate)
        with self.db.session() as session:
            session.add(news)
        logger.info("created news %s", news.slug)
        return news