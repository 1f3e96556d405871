"""User orders and the services ordered in them."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Mapped, mapped_column, relationship, selectinload

from .catalog import Service, Tariff
from .database import Base, RecordNotFound, StorageDb
from .events import EventBus

logger = logging.getLogger(__name__)

NEW_USER_ORDER = "newUserOrder"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _relation(obj: Any, name: str, default: Any) -> Any:
    state = inspect(obj)
    if name in state.unloaded and state.detached:
        return default
    return getattr(obj, name)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class UserOrder(Base):
    """An order placed by a user."""

    __tablename__ = "user_order_services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slug: Mapped[str] = mapped_column(String, default="")
    user_id: Mapped[int] = mapped_column(Integer, default=0)
    total_amount: Mapped[float] = mapped_column(Float, default=0.0)
    order_params: Mapped[str] = mapped_column(Text, default="")
    promo_code: Mapped[str] = mapped_column(String, default="")
    status: Mapped[str] = mapped_column(String, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now, onupdate=_now)
    services: Mapped[list["OrderedService"]] = relationship(
        back_populates="order", order_by="OrderedService.id"
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "slug": self.slug,
            "total_amount": self.total_amount,
            "status": self.status,
        }


class OrderedService(Base):
    """A single service line of an order."""

    __tablename__ = "ordered_services"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tariff_id: Mapped[Optional[int]] = mapped_column(ForeignKey("tariffs_services.id"), nullable=True)
    service_id: Mapped[Optional[int]] = mapped_column(ForeignKey("services.id"), nullable=True)
    service_instructions: Mapped[str] = mapped_column(Text, default="")
    service_price: Mapped[float] = mapped_column(Float, default=0.0)
    order_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("user_order_services.id"), nullable=True
    )
    order_status: Mapped[str] = mapped_column(String, default="")
    type: Mapped[int] = mapped_column(Integer, default=0)
    resource: Mapped[str] = mapped_column(String, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_now, onupdate=_now)

    order: Mapped[Optional[UserOrder]] = relationship(back_populates="services")
    service: Mapped[Optional[Service]] = relationship()
    tariff: Mapped[Optional[Tariff]] = relationship()

    def to_dict(self) -> dict[str, Any]:
        order = _relation(self, "order", None)
        service = _relation(self, "service", None)
        tariff = _relation(self, "tariff", None)
        return {
            "service_about": self.service_instructions,
            "service_price": self.service_price,
            "service_status": self.order_status,
            "order_info": order.to_dict() if order is not None else None,
            "service_info": service.to_dict() if service is not None else None,
            "service_tariff": tariff.to_dict() if tariff is not None else None,
            "vw": self.type,
            "resource": self.resource,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


def _services_with_details() -> Any:
    return selectinload(UserOrder.services).options(
        selectinload(OrderedService.order),
        selectinload(OrderedService.service),
    )


def _service_sort_key(item: OrderedService) -> tuple:
    return (item.type or 0, item.updated_at or datetime.min, item.created_at or datetime.min)


class ServiceOrdersRepository:
    """Reads a user's orders and ordered services."""

    def __init__(self, db: StorageDb) -> None:
        self.db = db

    def orders_by_user(self, user_id: int) -> list[UserOrder]:
        """Orders of a user with their services; empty for no user or on errors."""
        if not user_id:
            return []
        stmt = (
            select(UserOrder)
            .where(UserOrder.user_id == user_id)
            .options(_services_with_details())
            .order_by(UserOrder.id)
        )
        try:
            with self.db.session() as session:
                return list(session.scalars(stmt).all())
        except SQLAlchemyError as exc:
            logger.warning("fetching orders failed: %s", exc)
            return []

    def ordered_services_by_user(self, user_id: int) -> list[OrderedService]:
        """All services a user ordered, newest orders first.

        Within an order, services are sorted by type, then update and
        creation time, all descending.
        """
        if not user_id:
            return []
        stmt = (
            select(UserOrder)
            .where(UserOrder.user_id == user_id)
            .options(
                selectinload(UserOrder.services).options(
                    selectinload(OrderedService.order),
                    selectinload(OrderedService.service),
                    selectinload(OrderedService.tariff),
                )
            )
            .order_by(UserOrder.updated_at.desc(), UserOrder.created_at.desc())
        )
        try:
            with self.db.session() as session:
                orders = list(session.scalars(stmt).all())
        except SQLAlchemyError as exc:
            logger.warning("fetching ordered services failed: %s", exc)
            return []
        return [
            item
            for order in orders
            for item in sorted(order.services, key=_service_sort_key, reverse=True)
        ]


class UserOrdersRepository:
    """Creates and reads user orders."""

    def __init__(self, db: StorageDb, events: EventBus | None = None) -> None:
        self.db = db
        self.events = events

    def get_all(self) -> list[UserOrder]:
        """Every order with its services, most recently updated first."""
        stmt = (
            select(UserOrder)
            .options(_services_with_details())
            .order_by(UserOrder.updated_at.desc())
        )
        with self.db.session() as session:
            return list(session.scalars(stmt).all())

    def insert(self, order: UserOrder) -> UserOrder:
        """Store an order with its services and announce it on the event bus."""
        with self.db.session() as session:
            session.add(order)
        if self.events is not None:
            self.events.push(NEW_USER_ORDER, order)
        return order

    def get_by_slug(self, slug: str) -> UserOrder:
        stmt = (
            select(UserOrder)
            .where(UserOrder.slug == slug)
            .options(_services_with_details())
            .limit(1)
        )
        with self.db.session() as session:
            order = session.scalars(stmt).first()
        if order is None:
            raise RecordNotFound(f"order {slug!r} not found")
        return order