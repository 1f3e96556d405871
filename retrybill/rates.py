"""Stored currency exchange rates against the rouble."""

from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy import Boolean, Float, Integer, String, select
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base, RecordNotFound, StorageDb

BASE_CURRENCY = "RUB"
_UPDATABLE = ("currency", "dir_currency", "value", "crypto")


class CurrencyRate(Base):
    """Price of one unit of ``dir_currency`` in ``currency``."""

    __tablename__ = "currency_rates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    currency: Mapped[str] = mapped_column(String, default="")
    dir_currency: Mapped[str] = mapped_column(String, default="")
    value: Mapped[float] = mapped_column(Float, default=0.0)
    crypto: Mapped[bool] = mapped_column(Boolean, default=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "currency": self.currency,
            "dir_currency": self.dir_currency,
            "value": self.value,
            "cr": bool(self.crypto),
        }


class RatesRepository:
    """Reads and stores exchange rates."""

    def __init__(self, db: StorageDb) -> None:
        self.db = db

    def get_all(self) -> list[CurrencyRate]:
        """All rates quoted in roubles."""
        stmt = select(CurrencyRate).where(CurrencyRate.currency == BASE_CURRENCY)
        with self.db.session() as session:
            return list(session.scalars(stmt).all())

    def get_by_dir_currency(self, dir_currency: str) -> CurrencyRate:
        stmt = (
            select(CurrencyRate)
            .where(
                CurrencyRate.currency == BASE_CURRENCY,
                CurrencyRate.dir_currency == dir_currency,
            )
            .limit(1)
        )
        with self.db.session() as session:
            rate = session.scalars(stmt).first()
        if rate is None:
            raise RecordNotFound(f"rate for {dir_currency!r} not found")
        return rate

    def save_rates(self, rates: Iterable[CurrencyRate]) -> None:
        """Insert unknown currencies and update known ones.

        Only non-empty, non-zero fields of an incoming rate overwrite a stored one.
        """
        with self.db.session() as session:
            for rate in rates:
                existing = session.scalars(
                    select(CurrencyRate)
                    .where(CurrencyRate.dir_currency == rate.dir_currency)
                    .limit(1)
                ).first()
                if existing is None:
                    session.add(CurrencyRate(
                        currency=rate.currency or "",
                        dir_currency=rate.dir_currency or "",
                        value=rate.value or 0.0,
                        crypto=bool(rate.crypto),
                    ))
                    continue
                for name in _UPDATABLE:
                    value = getattr(rate, name)
                    if value:
                        setattr(existing, name, value)