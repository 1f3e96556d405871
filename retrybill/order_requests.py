"""Placing and showing users' service orders."""

from __future__ import annotations

import json
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

import requests
from sqlalchemy.exc import SQLAlchemyError

from .catalog import Tariff, TariffsRepository
from .database import RecordNotFound
from .dns_panel import DnsPanelClient
from .orders import OrderedService, UserOrder, UserOrdersRepository
from .users import BalanceRepository, InsufficientBalance, User, UserNotFound, UsersRepository

logger = logging.getLogger(__name__)

ORDER_ID_LENGTH = 10
ORDER_ID_ALPHABET = "12b45v78ej"
DOMAIN_SERVICE_TYPE = 4

MSG_TOP_UP = "Пополните баланс для заказа услуги!"
MSG_NOT_CREATED = "Упс! Заказ не создан!"
MSG_FAILED = "Усп! Что-то пошло не так! Уже разбираемся"
MSG_CREATED = "Заказ успешно создан!"
CODE_CREATED = 463

_SERVER_KEY = "cpu"
_DOMAIN_GUARD_KEY = "domain sgd name"


class OrderError(Exception):
    """An order request that cannot be fulfilled, with the reply it maps to."""

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        status: int = 400,
        reason: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        if self.code is not None:
            return {"success": False, "code": self.code, "err": self.message}
        return {"success": False, "error": self.message}


@dataclass(frozen=True)
class OrderParam:
    """One ordered option and its chosen quantity."""

    key: str
    value: int


def encode_order_id(length: int = ORDER_ID_LENGTH) -> str:
    """Random order identifier drawn from a fixed ten-character alphabet."""
    return "".join(
        ORDER_ID_ALPHABET[byte % len(ORDER_ID_ALPHABET)]
        for byte in secrets.token_bytes(length)
    )


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _parse_items(params_json: str | bytes) -> dict[str, dict[str, Any]]:
    """Decode an object of ``{"price": int, "value": ...}`` items."""
    raw = json.loads(params_json)
    if not isinstance(raw, dict):
        raise ValueError("order params are not a JSON object")
    items: dict[str, dict[str, Any]] = {}
    for key, item in raw.items():
        if item is None:
            item = {}
        if not isinstance(item, dict):
            raise ValueError(f"order param {key!r} is not a JSON object")
        price = item.get("price", 0)
        if price is None:
            price = 0
        if not _is_int(price):
            raise ValueError(f"price of {key!r} is not an integer")
        slug = item.get("option_slug", "")
        if slug is not None and not isinstance(slug, str):
            raise ValueError(f"option_slug of {key!r} is not a string")
        items[key] = {"price": price, "value": item.get("value"), "option_slug": slug or ""}
    return items


def calculate_total_price(params_json: str | bytes) -> int:
    """Sum the prices of options that carry a string or numeric value.

    An unreadable document gives 0.
    """
    try:
        items = _parse_items(params_json)
    except ValueError as exc:
        logger.warning("order params parse error: %s", exc)
        return 0
    total = 0
    for key, item in items.items():
        value = item["value"]
        if isinstance(value, str) or (
            isinstance(value, (int, float)) and not isinstance(value, bool)
        ):
            total += item["price"]
        else:
            logger.info("unknown value type for %s: %s", key, type(value).__name__)
    return total


def ordered_params(params_json: str | bytes) -> list[OrderParam]:
    """The ordered options with integer values; an empty list if unreadable."""
    try:
        items = _parse_items(params_json)
    except ValueError as exc:
        logger.warning("order params parse error: %s", exc)
        return []
    params = []
    for key, item in items.items():
        value = item["value"]
        if value is None:
            value = 0
        if not _is_int(value):
            logger.warning("order param %s has a non-integer value", key)
            return []
        params.append(OrderParam(key, value))
    return params


def check_balance(user: User, amount: float) -> float:
    """Return the user's balance if it covers ``amount``.

    Raises:
        OrderError: if the amount is not positive, the user is unknown or
            the balance is too low.
    """
    if amount <= 0:
        raise OrderError(MSG_TOP_UP, code=429, reason="not_amount")
    if not user.id:
        raise OrderError(MSG_FAILED, code=491, reason="not_found")
    balance = user.balance
    available = balance.amount if balance is not None and balance.amount else 0.0
    if available >= amount:
        return available
    raise OrderError(MSG_FAILED, code=491, reason="not_avail")


def _service_kind(items: Mapping[str, dict[str, Any]]) -> tuple[str, dict[str, Any]]:
    kind = ""
    info: dict[str, Any] = {}
    for key, item in items.items():
        if key == _SERVER_KEY:
            logger.info("server ordered")
            info["server"] = item["value"]
            kind = "server"
        elif key == _DOMAIN_GUARD_KEY:
            logger.info("domain protection ordered")
            info["domain"] = item["value"]
            kind = "domain_guard"
    return kind, info


class OrderService:
    """Creates orders against a user's balance and reports domain orders."""

    def __init__(
        self,
        users: UsersRepository,
        balances: BalanceRepository,
        orders: UserOrdersRepository,
        tariffs: TariffsRepository,
        dns: DnsPanelClient,
    ) -> None:
        self.users = users
        self.balances = balances
        self.orders = orders
        self.tariffs = tariffs
        self.dns = dns

    def _find_tariff(self, slug: str) -> Tariff | None:
        try:
            return self.tariffs.get_by_slug(slug)
        except RecordNotFound:
            logger.info("tariff %r not found", slug)
            return None

    def create_order(
        self, user: User, params_json: str | bytes, tariff_slug: str
    ) -> UserOrder:
        """Place an order for the options in ``params_json`` and charge the user.

        Raises:
            OrderError: carrying the reply code for every failure.
        """
        tariff = self._find_tariff(tariff_slug)
        total = float(calculate_total_price(params_json))
        check_balance(user, total)

        order = self._insert_order(user, params_json, total, tariff)

        try:
            self.balances.withdraw(user.id, total)
        except (UserNotFound, InsufficientBalance, SQLAlchemyError) as exc:
            logger.warning("balance was not charged: %s", exc)
            raise OrderError(MSG_FAILED, code=486) from exc
        logger.info("order created and balance charged")
        return order

    def _insert_order(
        self,
        user: User,
        params_json: str | bytes,
        total: float,
        tariff: Tariff | None,
    ) -> UserOrder:
        try:
            items = _parse_items(params_json)
        except ValueError as exc:
            raise OrderError(MSG_NOT_CREATED, code=469) from exc

        text = params_json.decode("utf-8") if isinstance(params_json, bytes) else params_json
        line = OrderedService(
            tariff_id=tariff.id if tariff is not None else None,
            service_id=tariff.service_id if tariff is not None else None,
            service_instructions="",
            order_status="pending",
        )
        order = UserOrder(
            slug=encode_order_id(ORDER_ID_LENGTH),
            user_id=user.id,
            total_amount=total,
            promo_code="",
            status="pending",
            updated_at=datetime.now(timezone.utc),
            order_params=text,
            services=[line],
        )

        kind, info = _service_kind(items)
        resource = ""
        if kind in ("domain_guard", "domain_resolve"):
            domain = info.get("domain")
            if not isinstance(domain, str):
                raise OrderError(MSG_NOT_CREATED, code=469)
            resource = domain
            line.resource = domain
            line.type = DOMAIN_SERVICE_TYPE
            order.status = "accept"

        try:
            self.orders.insert(order)
        except SQLAlchemyError as exc:
            logger.warning("creating order failed: %s", exc)
            raise OrderError(MSG_NOT_CREATED, code=472) from exc

        if kind == "domain_guard":
            logger.info("requesting domain protection for %s", resource)
            try:
                zone = self.dns.create_zone(resource)
            except (ValueError, requests.RequestException) as exc:
                raise OrderError(MSG_FAILED, code=488) from exc
            logger.info("zone created: %s", zone)
        elif kind == "domain_resolve":
            logger.info("new domain requested")
        elif kind == "server":
            logger.info("new server requested")
        else:
            logger.info("service type not determined")
            raise OrderError("invalid_service", reason="invalid_service")
        return order

    def show_order(self, slug: str) -> dict[str, Any]:
        """A domain order with its zone and DNS records.

        Raises:
            OrderError: if the order is missing, not a domain order, has no
                domain, or the DNS panel fails.
        """
        try:
            order = self.orders.get_by_slug(slug)
        except RecordNotFound as exc:
            raise OrderError("not found", status=200, reason="not_found") from exc
        services = list(order.services or [])
        if not services or services[0].type != DOMAIN_SERVICE_TYPE:
            raise OrderError("not found", status=200, reason="not_found")
        domain = services[0].resource or ""
        if not domain:
            raise OrderError("not found domain", status=200, reason="not_found_domain")
        try:
            zone = self.dns.zone_info(domain)
            records = self.dns.zone_records(domain)
        except (ValueError, requests.RequestException) as exc:
            raise OrderError(str(exc), status=200, reason="dns") from exc
        return {"order": order, "order_dns": zone, "order_dns_rec": records}