"""Hosting services and their tariffs."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Mapped, mapped_column, relationship, selectinload
from sqlalchemy.orm.attributes import set_committed_value

from .database import Base, RecordNotFound, StorageDb

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _relation(obj: Any, name: str, default: Any) -> Any:
    """Return a relationship value, or ``default`` if it was never loaded on a detached row."""
    state = inspect(obj)
    if name in state.unloaded and state.detached:
        return default
    return getattr(obj, name)


class Tariff(Base):
    """A priced plan of a service."""

    __tablename__ = "tariffs_services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    service_id: Mapped[Optional[int]] = mapped_column(ForeignKey("services.id"), nullable=True)
    slug: Mapped[str] = mapped_column(String, default="")
    full_name: Mapped[str] = mapped_column(String, default="")
    full_name_en: Mapped[str] = mapped_column(String, default="")
    first_amount: Mapped[str] = mapped_column(String, default="")
    desc_alert: Mapped[str] = mapped_column(String, default="")
    desc_alert_en: Mapped[str] = mapped_column(String, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    params: Mapped[Any] = mapped_column(JSON, nullable=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "slug": self.slug,
            "full_name": self.full_name,
            "full_name_en": self.full_name_en,
            "first_amount": self.first_amount,
            "desc_alert": self.desc_alert,
            "desc_alert_en": self.desc_alert_en,
            "params": self.params,
        }


class Service(Base):
    """A service offered for ordering."""

    __tablename__ = "services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slug: Mapped[str] = mapped_column(String, default="")
    name: Mapped[str] = mapped_column(String, default="")
    full_name: Mapped[str] = mapped_column(String, default="")
    full_name_en: Mapped[str] = mapped_column(String, default="")
    device_name: Mapped[str] = mapped_column(String, default="")
    device_slug: Mapped[str] = mapped_column(String, default="")
    banner_desc: Mapped[str] = mapped_column(String, default="")
    banner_desc_en: Mapped[str] = mapped_column(String, default="")
    tariffs: Mapped[list[Tariff]] = relationship(order_by="Tariff.id")

    def to_dict(self) -> dict[str, Any]:
        return {
            "slug": self.slug,
            "name": self.name,
            "full_name": self.full_name,
            "full_name_en": self.full_name_en,
            "device_name": self.device_name,
            "device_slug": self.device_slug,
            "banner_desc": self.banner_desc,
            "banner_desc_en": self.banner_desc_en,
            "tariffs": [tariff.to_dict() for tariff in _relation(self, "tariffs", [])],
        }


class ServicesRepository:
    """Queries over services."""

    def __init__(self, db: StorageDb) -> None:
        self.db = db

    def get_by_slug(self, slug: str) -> Service:
        """Return the service with its tariffs oldest first."""
        stmt = select(Service).where(Service.slug == slug).limit(1)
        with self.db.session() as session:
            service = session.scalars(stmt).first()
            if service is None:
                raise RecordNotFound(f"service {slug!r} not found")
            tariffs = session.scalars(
                select(Tariff)
                .where(Tariff.service_id == service.id)
                .order_by(Tariff.created_at.asc(), Tariff.id.asc())
            ).all()
            set_committed_value(service, "tariffs", list(tariffs))
        return service

    def get_all(self) -> list[Service]:
        """Return every service with its tariffs; an empty list on database errors."""
        stmt = select(Service).options(selectinload(Service.tariffs)).order_by(Service.id)
        try:
            with self.db.session() as session:
                return list(session.scalars(stmt).all())
        except SQLAlchemyError as exc:
            logger.warning("fetching services failed: %s", exc)
            return []


class TariffsRepository:
    """Queries over tariffs."""

    def __init__(self, db: StorageDb) -> None:
        self.db = db

    def get_by_slug(self, slug: str) -> Tariff:
        stmt = select(Tariff).where(Tariff.slug == slug).limit(1)
        with self.db.session() as session:
            tariff = session.scalars(stmt).first()
        if tariff is None:
            raise RecordNotFound(f"tariff {slug!r} not found")
        return tariff