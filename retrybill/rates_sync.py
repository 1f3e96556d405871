"""Periodic refresh of stored exchange rates."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import requests

from .database import StorageDb
from .exchange import ExchangeRates, fetch_binance_rub, fetch_cbr
from .rates import BASE_CURRENCY, CurrencyRate, RatesRepository

logger = logging.getLogger(__name__)

DEFAULT_PATH = "exchange_data.json"
DEFAULT_INTERVAL = 30 * 60


@dataclass
class ExchangeSnapshot:
    """Fiat and crypto rates fetched together."""

    last_updated: datetime | None = None
    data: ExchangeRates = field(default_factory=ExchangeRates)

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "data": self.data.to_dict(),
        }


def update_exchange_data(
    session: requests.Session | None = None,
    path: str | Path = DEFAULT_PATH,
) -> ExchangeSnapshot:
    """Fetch central bank and crypto rates and save them as JSON to ``path``.

    If the file cannot be written an empty snapshot is returned.
    """
    rates = fetch_cbr(session)
    snapshot = ExchangeSnapshot(last_updated=datetime.now().astimezone(), data=rates)
    crypto = fetch_binance_rub(session)
    snapshot.data.valute.update(crypto.valute)

    try:
        text = json.dumps(snapshot.to_dict(), ensure_ascii=False)
        Path(path).write_text(text, encoding="utf-8")
    except (OSError, TypeError, ValueError) as exc:
        logger.warning("Error writing exchange data: %s", exc)
        return ExchangeSnapshot()
    logger.info("Exchange data updated successfully.")
    return snapshot


def format_rates(snapshot: ExchangeSnapshot) -> list[CurrencyRate]:
    """Rouble rates ready to be stored."""
    return [
        CurrencyRate(
            currency=BASE_CURRENCY,
            dir_currency=valute.char_code,
            value=valute.value,
            crypto=valute.crypto,
        )
        for valute in snapshot.data.valute.values()
    ]


class RatesUpdater:
    """Fetches and stores rates now and then every ``interval`` seconds."""

    def __init__(
        self,
        db: StorageDb,
        session: requests.Session | None = None,
        interval: float = DEFAULT_INTERVAL,
        path: str | Path = DEFAULT_PATH,
    ) -> None:
        self.db = db
        self.session = session
        self.interval = interval
        self.path = path
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def run_once(self) -> list[CurrencyRate]:
        """Fetch, save to file and store in the database; return the rates."""
        snapshot = update_exchange_data(self.session, self.path)
        rates = format_rates(snapshot)
        RatesRepository(self.db).save_rates(rates)
        return rates

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.run_once()
            except Exception:
                logger.exception("rates update failed")

    def start(self) -> None:
        """Update once, then keep updating in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self.run_once()
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="rates-updater", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop the background updates and wait for the thread to end."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None