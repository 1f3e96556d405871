"""Exchange rates from the central bank and rouble crypto pairs."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Mapping

import requests

logger = logging.getLogger(__name__)

BINANCE_TICKER_URL = "https://api.binance.com/api/v3/ticker/price"
CBR_DAILY_URL = "https://www.cbr-xml-daily.ru/daily_json.js"
QUOTE_CURRENCY = "RUB"

BINANCE_RUB_PAIRS = (
    "BTCRUB",
    "ETHRUB",
    "XRPRUB",
    "BNBRUB",
    "BUSDRUB",
    "USDTRUB",
    "LTCRUB",
    "ADARUB",
    "DOGERUB",
    "SHIBRUB",
    "MATICRUB",
    "DOTRUB",
    "SOLRUB",
    "ICPRUB",
    "TRURUB",
    "WAVESRUB",
    "ARPARUB",
    "FTMRUB",
    "NURUB",
    "ALGORUB",
    "NEORUB",
    "NEARRUB",
    "ARBRUB",
    "ARKMRUB",
    "WLDRUB",
)

_FRACTION_RE = re.compile(r"\.(\d{6})\d+")


def _parse_time(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"invalid time value: {value!r}")
    text = value
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(r".\1", text)
    return datetime.fromisoformat(text)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass
class Valute:
    """Price of one currency in roubles."""

    id: str = ""
    num_code: str = ""
    char_code: str = ""
    nominal: int = 0
    name: str = ""
    value: float = 0.0
    previous: float = 0.0
    crypto: bool = False

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Valute":
        return cls(
            id=str(raw.get("ID") or ""),
            num_code=str(raw.get("NumCode") or ""),
            char_code=str(raw.get("CharCode") or ""),
            nominal=int(raw.get("Nominal") or 0),
            name=str(raw.get("Name") or ""),
            value=float(raw.get("Value") or 0.0),
            previous=float(raw.get("Previous") or 0.0),
            crypto=False,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "ID": self.id,
            "NumCode": self.num_code,
            "CharCode": self.char_code,
            "Nominal": self.nominal,
            "Name": self.name,
            "Value": self.value,
            "Previous": self.previous,
        }


@dataclass
class ExchangeRates:
    """A set of rates keyed by currency code."""

    date: datetime | None = None
    previous_date: datetime | None = None
    previous_url: str = ""
    timestamp: datetime | None = None
    valute: dict[str, Valute] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "Date": _iso(self.date),
            "PreviousDate": _iso(self.previous_date),
            "PreviousURL": self.previous_url,
            "Timestamp": _iso(self.timestamp),
            "Valute": {code: item.to_dict() for code, item in self.valute.items()},
        }


def parse_binance_tickers(
    tickers: Iterable[Mapping[str, Any]], now: datetime | None = None
) -> ExchangeRates:
    """Keep the allowed rouble pairs of a ticker list as crypto rates."""
    rates = ExchangeRates()
    for info in tickers:
        if not isinstance(info, Mapping):
            continue
        symbol = info.get("symbol") or ""
        if symbol not in BINANCE_RUB_PAIRS:
            continue
        rates.date = now if now is not None else datetime.now().astimezone()
        code = symbol.removesuffix(QUOTE_CURRENCY)
        try:
            price = float(str(info.get("price")))
        except ValueError as exc:
            logger.warning("bad price for %s: %s", symbol, exc)
            price = 0.0
        rates.valute[code] = Valute(
            id="",
            char_code=code,
            value=price,
            name=symbol,
            nominal=1,
            previous=price,
            crypto=True,
        )
    return rates


def fetch_binance_rub(session: requests.Session | None = None) -> ExchangeRates:
    """Fetch rouble crypto prices; failures are logged and give an empty set."""
    client = session or requests.Session()
    try:
        response = client.get(BINANCE_TICKER_URL)
    except requests.RequestException as exc:
        logger.warning("Error Binance parse, resp reason: %s", exc)
        return ExchangeRates()
    try:
        payload = json.loads(response.text)
    except ValueError as exc:
        logger.warning("Error Binance parse, json reason: %s", exc)
        return ExchangeRates()
    if not isinstance(payload, list):
        logger.warning("Error Binance parse, json reason: not a list")
        return ExchangeRates()
    return parse_binance_tickers(payload)


def parse_cbr(payload: str | bytes | Mapping[str, Any]) -> ExchangeRates:
    """Decode the central bank daily JSON.

    Raises:
        ValueError: if the document is not a valid rates object.
    """
    if isinstance(payload, (str, bytes, bytearray)):
        payload = json.loads(payload)
    if not isinstance(payload, Mapping):
        raise ValueError("rates document is not a JSON object")
    raw_valute = payload.get("Valute") or {}
    if not isinstance(raw_valute, Mapping):
        raise ValueError("Valute is not a JSON object")
    valute = {}
    for code, raw in raw_valute.items():
        if not isinstance(raw, Mapping):
            raise ValueError(f"rate {code!r} is not a JSON object")
        valute[code] = Valute.from_dict(raw)
    return ExchangeRates(
        date=_parse_time(payload.get("Date")),
        previous_date=_parse_time(payload.get("PreviousDate")),
        previous_url=str(payload.get("PreviousURL") or ""),
        timestamp=_parse_time(payload.get("Timestamp")),
        valute=valute,
    )


def fetch_cbr(session: requests.Session | None = None) -> ExchangeRates:
    """Fetch central bank rates.

    A 304 reply or an unreadable body gives an empty set; a failed request raises.
    """
    client = session or requests.Session()
    response = client.get(CBR_DAILY_URL)
    logger.info("Status: %s", response.status_code)
    if response.status_code == 304:
        return ExchangeRates()
    try:
        rates = parse_cbr(response.text)
    except ValueError as exc:
        logger.warning("Error: %s", exc)
        return ExchangeRates()
    logger.info(
        "Date: %s PreviousDate: %s PreviousURL: %s Timestamp: %s",
        rates.date, rates.previous_date, rates.previous_url, rates.timestamp,
    )
    return rates