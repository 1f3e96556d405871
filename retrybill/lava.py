"""Client for creating invoices with the Lava business payment gateway."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any

import requests

logger = logging.getLogger(__name__)

LAVA_INVOICE_URL = "https://api.lava.ru/business/invoice/create"
MIN_EXPIRE = 1
MAX_EXPIRE = 43200

_JSON_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


class LavaError(Exception):
    """Raised when the gateway answers with an error or an unreadable body."""


def _normalise(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return int(value)
    if isinstance(value, dict):
        return {key: _normalise(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalise(item) for item in value]
    return value


def _marshal(obj: Any, sort_keys: bool) -> bytes:
    text = json.dumps(
        _normalise(obj),
        ensure_ascii=False,
        separators=(",", ":"),
        sort_keys=sort_keys,
    )
    for char, escaped in _JSON_ESCAPES.items():
        text = text.replace(char, escaped)
    return text.encode("utf-8")


@dataclass
class InvoiceResponseData:
    """Invoice details returned by the gateway."""

    id: str = ""
    amount: float = 0.0
    expired: str = ""
    status: int = 0
    shop_id: str = ""
    url: str = ""
    comment: str = ""
    merchant_name: str = ""
    exclude_service: Any = None
    include_service: Any = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "InvoiceResponseData":
        return cls(
            id=raw.get("id") or "",
            amount=float(raw.get("amount") or 0),
            expired=raw.get("expired") or "",
            status=int(raw.get("status") or 0),
            shop_id=raw.get("shop_id") or "",
            url=raw.get("url") or "",
            comment=raw.get("comment") or "",
            merchant_name=raw.get("merchantName") or "",
            exclude_service=raw.get("exclude_service"),
            include_service=raw.get("include_service"),
        )


@dataclass
class InvoiceResponse:
    """Top-level reply to an invoice creation request."""

    status: int = 0
    status_check: bool = False
    data: InvoiceResponseData = field(default_factory=InvoiceResponseData)

    @classmethod
    def from_dict(cls, raw: Any) -> "InvoiceResponse":
        if not isinstance(raw, dict):
            raise ValueError("invoice response is not a JSON object")
        data = raw.get("data") or {}
        if not isinstance(data, dict):
            raise ValueError("invoice response data is not a JSON object")
        return cls(
            status=int(raw.get("status") or 0),
            status_check=bool(raw.get("status_check", False)),
            data=InvoiceResponseData.from_dict(data),
        )


class LavaClient:
    """Creates invoices signed with a hex HMAC-SHA256 of the request body."""

    def __init__(
        self,
        project_id: str,
        secret_key: str,
        session: requests.Session | None = None,
    ) -> None:
        self.project_id = project_id
        self.secret_key = secret_key
        self.session = session or requests.Session()

    def sign(self, params: dict[str, Any]) -> str:
        """Hex HMAC-SHA256 signature of the JSON-encoded parameters."""
        body = _marshal(params, sort_keys=True)
        return hmac.new(self.secret_key.encode(), body, hashlib.sha256).hexdigest()

    def create_invoice(
        self,
        amount: float,
        comment: str,
        order_id: str = "",
        expire: int = 300,
    ) -> InvoiceResponse:
        """Create an invoice; ``expire`` is clamped to 1..43200 minutes."""
        if not order_id:
            now = time.time_ns()
            order_id = f"LavaBusiness-{now // 1_000_000}-{now % 1_000_000}"
        expire = min(max(expire, MIN_EXPIRE), MAX_EXPIRE)
        params = {
            "shopId": self.project_id,
            "orderId": order_id,
            "sum": amount,
            "comment": comment,
            "expire": expire,
        }
        headers = {
            "Signature": self.sign(params),
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        response = self.session.post(
            LAVA_INVOICE_URL, data=_marshal(params, sort_keys=True), headers=headers
        )
        return InvoiceResponse.from_dict(response.json())


def sign_base64(secret_key: str, data: bytes) -> str:
    """Base64 HMAC-SHA256 signature of raw bytes."""
    digest = hmac.new(secret_key.encode(), data, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


@dataclass
class InvoiceData:
    """Invoice request body signed with a base64 HMAC-SHA256."""

    shop_id: str
    sum: float
    order_id: str
    hook_url: str = ""
    success_url: str = ""
    fail_url: str = ""
    expire: int = 0
    custom_fields: str = ""
    comment: str = ""
    include_service: list[str] = field(default_factory=list)
    generated_signature: str = ""

    @classmethod
    def new(cls, amount: float, order_id: str) -> "InvoiceData":
        """Top-up invoice with the shop settings taken from the environment."""
        return cls(
            shop_id=os.environ.get("LAVA_SHOP_ID", ""),
            sum=amount,
            order_id=order_id,
            hook_url=os.environ.get("LAVA_HOOK_URL", "https://example.com/pay.html"),
            success_url=os.environ.get("LAVA_SUCCESS_URL", "https://example.com/paid.html"),
            fail_url=os.environ.get("LAVA_FAIL_URL", "https://example.com/fail.html"),
            expire=300,
            comment="Пополнение аккаунта",
            include_service=[],
        )

    def body(self) -> bytes:
        """JSON body sent to the gateway."""
        payload = {
            "shopId": self.shop_id,
            "sum": self.sum,
            "orderId": self.order_id,
            "hookUrl": self.hook_url,
            "successUrl": self.success_url,
            "failUrl": self.fail_url,
            "expire": self.expire,
            "customFields": self.custom_fields,
            "comment": self.comment,
            "includeService": list(self.include_service),
        }
        return _marshal(payload, sort_keys=False)

    def generate_signature(self, secret_key: str) -> str:
        """Sign the body, remember the signature and return it."""
        self.generated_signature = sign_base64(secret_key, self.body())
        return self.generated_signature

    def send_request(
        self, url: str, session: requests.Session | None = None
    ) -> requests.Response:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Signature": self.generated_signature,
        }
        return (session or requests.Session()).post(url, data=self.body(), headers=headers)

    def handle_response(self, response: requests.Response) -> dict[str, Any]:
        """Decode a successful reply, raising ``LavaError`` otherwise."""
        if response.status_code != 200:
            logger.warning("lava error body: %s", response.text)
            raise LavaError(f"API responded with status code {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            raise LavaError(f"error decoding response: {exc}") from exc
        if not isinstance(data, dict):
            raise LavaError("error decoding response: not a JSON object")
        return data

    def create_invoice(
        self,
        secret_key: str | None = None,
        url: str = LAVA_INVOICE_URL,
        session: requests.Session | None = None,
    ) -> dict[str, Any]:
        """Sign, send and decode an invoice request."""
        if secret_key is None:
            secret_key = os.environ.get("LAVA_SECRET_KEY", "")
        self.generate_signature(secret_key)
        response = self.send_request(url, session)
        data = self.handle_response(response)
        logger.info("lava response data: %s", data)
        return data