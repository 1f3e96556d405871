"""Users, their balances and password handling."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Optional

import bcrypt
from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, inspect, or_, select
from sqlalchemy.orm import Mapped, mapped_column, relationship, selectinload

from .database import Base, RecordNotFound, StorageDb
from .orders import UserOrder
from .rates import RatesRepository

BCRYPT_DEFAULT_COST = 10


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _relation(obj: Any, name: str, default: Any) -> Any:
    state = inspect(obj)
    if name in state.unloaded and state.detached:
        return default
    return getattr(obj, name)


def _divide(amount: float, rate: float) -> float:
    if rate:
        return amount / rate
    if amount == 0 or math.isnan(amount):
        return math.nan
    return math.copysign(math.inf, amount)


class UserNotFound(RecordNotFound):
    """Raised when a user or their balance does not exist."""


class InsufficientBalance(Exception):
    """Raised when a balance is lower than the requested amount."""

    def __init__(self, available: float, requested: float) -> None:
        super().__init__("avail Balance not amount sum")
        self.available = available
        self.requested = requested


def hash_password(password: str) -> str:
    """Return a bcrypt hash of the password."""
    salt = bcrypt.gensalt(rounds=BCRYPT_DEFAULT_COST)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("ascii")


def check_password(hashed: str, password: str) -> bool:
    """Tell whether the password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("ascii"))
    except ValueError:
        return False


class UserBalance(Base):
    """Money held by a user, in roubles."""

    __tablename__ = "users_balances"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), primary_key=True, autoincrement=False
    )
    amount: Mapped[float] = mapped_column(Float, default=0.0)
    freeze_balance: Mapped[bool] = mapped_column(Boolean, default=False)

    # Computed values, never stored.
    amount_usd = 0.0
    amount_exchanges = None

    def to_dict(self) -> dict[str, Any]:
        exchanges = self.amount_exchanges
        return {
            "amount_usd": self.amount_usd,
            "amount": self.amount or 0.0,
            "amount_exc": dict(exchanges) if exchanges is not None else None,
        }


class User(Base):
    """An account of the billing."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String, default="")
    password: Mapped[str] = mapped_column(String, default="")
    email: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    telegram_id: Mapped[str] = mapped_column(String, default="")
    birthday: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    balance: Mapped[Optional[UserBalance]] = relationship(lazy="selectin", uselist=False)
    orders: Mapped[list[UserOrder]] = relationship(
        primaryjoin="User.id == foreign(UserOrder.user_id)",
        viewonly=True,
        order_by="UserOrder.id",
    )

    def to_dict(self) -> dict[str, Any]:
        balance = _relation(self, "balance", None)
        orders = _relation(self, "orders", [])
        return {
            "username": self.username,
            "t_id": self.telegram_id,
            "birthday": self.birthday.isoformat() if self.birthday else None,
            "balance": (
                balance.to_dict()
                if balance is not None
                else {"amount_usd": 0.0, "amount": 0.0, "amount_exc": None}
            ),
            "orders": [order.to_dict() for order in orders],
        }


class UsersRepository:
    """Reads and creates users."""

    def __init__(self, db: StorageDb) -> None:
        self.db = db
        self.balances = BalanceRepository(db, self)

    def get_all(self) -> list[User]:
        """All users by username with their balances and orders."""
        stmt = (
            select(User)
            .options(selectinload(User.orders))
            .order_by(User.username.asc())
        )
        with self.db.session() as session:
            return list(session.scalars(stmt).all())

    def get_by_login(self, login: str) -> User:
        """Find a user by username, e-mail or Telegram id."""
        stmt = (
            select(User)
            .where(or_(User.username == login, User.email == login, User.telegram_id == login))
            .order_by(User.id)
            .limit(1)
        )
        with self.db.session() as session:
            user = session.scalars(stmt).first()
        if user is None:
            raise UserNotFound(f"user {login!r} not found")
        return user

    def get_by_username(self, username: str) -> User:
        """Find a user by username and fill in the balance in every known currency."""
        stmt = select(User).where(User.username == username).order_by(User.id).limit(1)
        with self.db.session() as session:
            user = session.scalars(stmt).first()
        if user is None:
            raise UserNotFound(f"user {username!r} not found")
        if user.balance is None:
            user.balance = UserBalance(user_id=user.id, amount=0.0, freeze_balance=False)
        user.balance.amount_exchanges = self.balances.calculate_amount_exchanges(user.balance)
        return user

    def get_by_id(self, user_id: int) -> User:
        stmt = select(User).where(User.id == user_id).limit(1)
        with self.db.session() as session:
            user = session.scalars(stmt).first()
        if user is None:
            raise UserNotFound(f"user #{user_id} not found")
        return user

    def create_user(self, username: str, password: str) -> User:
        """Store a new user with a hashed password."""
        user = User(
            username=username,
            password=hash_password(password),
            telegram_id="",
            birthday=_now(),
        )
        with self.db.session() as session:
            session.add(user)
        return user


class BalanceRepository:
    """Balance checks, conversions and withdrawals."""

    def __init__(self, db: StorageDb, users: UsersRepository | None = None) -> None:
        self.db = db
        self.users = users if users is not None else UsersRepository(db)
        self.rates = RatesRepository(db)

    def calculate_amount_exchanges(self, balance: UserBalance) -> dict[str, float]:
        """The balance amount expressed in each stored currency."""
        amount = balance.amount or 0.0
        return {
            rate.dir_currency: _divide(amount, rate.value or 0.0)
            for rate in self.rates.get_all()
        }

    def get_avail_balance(self, user_id: int, amount: float) -> float:
        """Return the user's balance if it covers ``amount``.

        Raises:
            UserNotFound: if the user does not exist.
            InsufficientBalance: if the balance is lower than ``amount``.
        """
        user = self.users.get_by_id(user_id)
        available = user.balance.amount if user.balance is not None else 0.0
        if available >= amount:
            return available
        raise InsufficientBalance(available, amount)

    def withdraw(self, user_id: int, amount: float) -> float:
        """Take ``amount`` off the user's balance and return what remains."""
        stmt = (
            select(UserBalance)
            .where(UserBalance.user_id == user_id)
            .with_for_update()
            .limit(1)
        )
        with self.db.session() as session:
            balance = session.scalars(stmt).first()
            if balance is None:
                raise UserNotFound(f"balance of user #{user_id} not found")
            if balance.amount < amount:
                raise InsufficientBalance(balance.amount, amount)
            balance.amount -= amount
            remaining = balance.amount
        return remaining