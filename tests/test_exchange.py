from datetime import datetime, timedelta, timezone

import pytest
import requests
import responses

from retrybill.exchange import (
    BINANCE_TICKER_URL,
    CBR_DAILY_URL,
    ExchangeRates,
    Valute,
    fetch_binance_rub,
    fetch_cbr,
    parse_binance_tickers,
    parse_cbr,
)

NOW = datetime(2024, 1, 20, 12, 0, tzinfo=timezone.utc)

CBR_DOC = {
    "Date": "2024-01-20T11:30:00+03:00",
    "PreviousDate": "2024-01-19T11:30:00+03:00",
    "PreviousURL": "//www.cbr-xml-daily.ru/archive/2024/01/19/daily_json.js",
    "Timestamp": "2024-01-19T20:00:00+03:00",
    "Valute": {
        "USD": {
            "ID": "R01235",
            "NumCode": "840",
            "CharCode": "USD",
            "Nominal": 1,
            "Name": "Доллар США",
            "Value": 88.6852,
            "Previous": 88.2829,
        },
        "EUR": {
            "ID": "R01239",
            "NumCode": "978",
            "CharCode": "EUR",
            "Nominal": 1,
            "Name": "Евро",
            "Value": 96.5228,
            "Previous": 96.0839,
        },
    },
}


def test_binance_keeps_only_allowed_pairs():
    tickers = [
        {"symbol": "BTCRUB", "price": "3800000.5"},
        {"symbol": "BTCUSDT", "price": "42000"},
        {"symbol": "ETHRUB", "price": "220000"},
        {"symbol": "", "price": "1"},
    ]
    rates = parse_binance_tickers(tickers, NOW)
    assert set(rates.valute) == {"BTC", "ETH"}
    assert rates.date == NOW
    btc = rates.valute["BTC"]
    assert btc.value == 3800000.5
    assert btc.previous == btc.value
    assert btc.name == "BTCRUB"
    assert btc.char_code == "BTC"
    assert btc.nominal == 1
    assert btc.crypto is True


def test_binance_without_matches_has_no_date():
    rates = parse_binance_tickers([{"symbol": "BTCUSDT", "price": "1"}], NOW)
    assert rates.valute == {}
    assert rates.date is None


def test_binance_bad_price_becomes_zero():
    rates = parse_binance_tickers([{"symbol": "SOLRUB", "price": "oops"}], NOW)
    assert rates.valute["SOL"].value == 0.0


def test_fetch_binance_rub():
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            BINANCE_TICKER_URL,
            json=[{"symbol": "USDTRUB", "price": "90.1"}, {"symbol": "ETHBTC", "price": "0.05"}],
        )
        rates = fetch_binance_rub()
    assert list(rates.valute) == ["USDT"]
    assert rates.valute["USDT"].value == 90.1


def test_fetch_binance_bad_json_gives_empty():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, BINANCE_TICKER_URL, body="not json")
        rates = fetch_binance_rub()
    assert rates.valute == {}


def test_fetch_binance_connection_error_gives_empty():
    with responses.RequestsMock():
        rates = fetch_binance_rub()
    assert rates == ExchangeRates()


def test_parse_cbr():
    rates = parse_cbr(CBR_DOC)
    assert set(rates.valute) == {"USD", "EUR"}
    usd = rates.valute["USD"]
    assert usd.value == 88.6852
    assert usd.num_code == "840"
    assert usd.crypto is False
    assert rates.date.utcoffset() == timedelta(hours=3)
    assert rates.date.day == 20
    assert rates.previous_url == CBR_DOC["PreviousURL"]


def test_parse_cbr_rejects_non_object():
    with pytest.raises(ValueError):
        parse_cbr("[1, 2]")


def test_to_dict_round_trip():
    rates = parse_cbr(CBR_DOC)
    again = parse_cbr(rates.to_dict())
    assert again == rates
    assert "crypto" not in rates.to_dict()["Valute"]["USD"]


def test_empty_rates_to_dict():
    data = ExchangeRates().to_dict()
    assert data["Valute"] == {}
    assert data["Date"] is None


def test_valute_from_dict_defaults():
    assert Valute.from_dict({}) == Valute()


def test_fetch_cbr():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, CBR_DAILY_URL, json=CBR_DOC)
        rates = fetch_cbr()
    assert rates.valute["EUR"].value == 96.5228


def test_fetch_cbr_not_modified_is_empty():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, CBR_DAILY_URL, status=304)
        rates = fetch_cbr()
    assert rates == ExchangeRates()


def test_fetch_cbr_bad_body_is_empty():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, CBR_DAILY_URL, body="{broken")
        rates = fetch_cbr()
    assert rates.valute == {}


def test_fetch_cbr_connection_error_raises():
    with responses.RequestsMock():
        with pytest.raises(requests.ConnectionError):
            fetch_cbr()