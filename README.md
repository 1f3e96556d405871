# retrybill

The core of a hosting billing backend, as a library:

- a SQL storage handle (`retrybill.database.StorageDb`) and SQLAlchemy
  repositories for services, tariffs, orders, users, balances, news and
  currency rates;
- order requests (`retrybill.order_requests`): pricing the chosen options,
  checking and withdrawing the user's balance, and opening DNS-protection
  zones on a DNS panel (`retrybill.dns_panel`);
- currency rates from the central bank daily feed and Binance RUB pairs
  (`retrybill.exchange`), saved to a JSON snapshot and to the database on a
  timer (`retrybill.rates_sync`);
- Lava payment invoices with HMAC-SHA256 signed requests (`retrybill.lava`);
- an in-process event bus (`retrybill.events`);
- thread-safe expiring caches (`retrybill.cache`);
- Inertia-style page rendering (`retrybill.inertia`) with Vite asset tags
  (`retrybill.assets`) and Ziggy route data (`retrybill.ziggy`).

Install with `pip install .`; the test suite needs the `test` extra
(pytest and responses).

## Configuration and storage

`load_env(path)` reads a dotenv file into `os.environ`, keeping variables
that are already set, and returns the values it read. A missing file raises
`FileNotFoundError`.

`StorageDb(dsn)` takes a SQLAlchemy URL (or a libpq key/value string, used
for PostgreSQL); with an empty DSN it reads `APP_PSQ_DSN`. `connect()`
creates the engine once; a failure there is kept and raised by `get_db()`.
`ping()` runs `SELECT 1`, and `session()` is a context manager that commits
on success and rolls back on error. A database driver other than SQLite's
(for example one for PostgreSQL) must be installed separately.

All tables share `retrybill.database.Base`, so a schema can be created with
`Base.metadata.create_all(db.get_db())` once the model modules are imported.

```python
from retrybill.config import load_env
from retrybill.database import Base, StorageDb
import retrybill.catalog, retrybill.orders, retrybill.users, retrybill.rates, retrybill.news

load_env(".env")
db = StorageDb("sqlite://").connect()
Base.metadata.create_all(db.get_db())
db.ping()
```

Lookups that find nothing raise `RecordNotFound` (a `LookupError`).

## Catalog, users and balances

- `ServicesRepository.get_by_slug(slug)` returns a `Service` with its
  tariffs oldest first; `get_all()` returns every service, or `[]` on a
  database error. `TariffsRepository.get_by_slug(slug)` returns a `Tariff`.
- `UsersRepository` has `get_all()`, `get_by_login(login)` (username,
  e-mail or Telegram id), `get_by_username(username)` (also fills
  `balance.amount_exchanges`), `get_by_id(user_id)` and
  `create_user(username, password)`, which stores a bcrypt hash.
  `hash_password` and `check_password` are available on their own.
- `BalanceRepository.calculate_amount_exchanges(balance)` converts a rouble
  balance into every stored rate; `get_avail_balance(user_id, amount)` and
  `withdraw(user_id, amount)` raise `UserNotFound` or `InsufficientBalance`.
- `NewsRepository` lists news newest first, finds one by slug, and
  `create_sample(translate)` stores an announcement whose English fields
  come from the `translate` callable you pass (a failed call leaves a field
  empty).

## Orders

```python
from retrybill.catalog import TariffsRepository
from retrybill.dns_panel import DnsPanelClient
from retrybill.events import EventBus
from retrybill.order_requests import OrderService
from retrybill.orders import UserOrdersRepository
from retrybill.users import BalanceRepository, UsersRepository

bus = EventBus()
users = UsersRepository(db)
service = OrderService(
    users,
    BalanceRepository(db, users),
    UserOrdersRepository(db, bus),
    TariffsRepository(db),
    DnsPanelClient.from_env(None),   # DNS_PANEL_URL, DNS_PANEL_KEY
)
user = users.get_by_username("alice")
order = service.create_order(
    user,
    '{"domain sgd name": {"price": 240, "value": "example.com"}}',
    "guard-basic",
)
details = service.show_order(order.slug)
```

`create_order` sums the prices of options carrying a string or number
value, checks the balance, stores the order (pushing a `newUserOrder` event
when a bus is given), opens a DNS zone for a `domain sgd name` option, and
withdraws the total. A `cpu` option marks a server order; any other set of
options is rejected. Every failure raises `OrderError`, whose `code`,
`status`, `reason` and `to_dict()` describe the reply. `show_order(slug)`
returns the order with its zone and DNS records for domain orders.

Helpers: `calculate_total_price`, `ordered_params`, `check_balance` and
`encode_order_id`.

## Currency rates

```python
from retrybill.rates_sync import RatesUpdater

updater = RatesUpdater(db, None, 30 * 60, "exchange_data.json")
updater.run_once()   # fetch, write the JSON snapshot, store the rates
updater.start()      # run once, then refresh every interval in a thread
updater.stop()
```

`update_exchange_data(session, path)` and `format_rates(snapshot)` are the
two steps of `run_once`. In `retrybill.exchange`, `fetch_cbr`,
`fetch_binance_rub`, `parse_cbr` and `parse_binance_tickers` fetch and
decode the two feeds; `RatesRepository.save_rates` inserts new currencies
and updates known ones.

## Events and caching

`EventBus.push(name, data)` queues an event, `push_many(events, delay)`
queues several until one has no data, `subscribe(name, handler)` registers
a handler, `dispatch(event)` runs the handlers, and `run(stop)` dispatches
queued events until the given `threading.Event` is set. The bus counts
`newRegisterUser` events in `registrations`.

```python
from retrybill.cache import CacheManager

cache = CacheManager()
news = cache.remember("news_listing_list_all", 120, lambda: ["..."])
```

`CacheManager` expires entries lazily (a TTL of 0 keeps them);
`LocalCacheManager` removes each entry with a timer.

## Payments

```python
from retrybill.lava import LavaClient

client = LavaClient("shop-id", "placeholder", None)
invoice = client.create_invoice(500.0, "Account top-up", "", 300)
```

The expiry is clamped to 1..43200 minutes and an order id is generated when
none is given; the body is signed with a hex HMAC-SHA256. `InvoiceData`
builds a base64-signed request instead; `InvoiceData.new(amount, order_id)`
reads `LAVA_SHOP_ID`, `LAVA_HOOK_URL`, `LAVA_SUCCESS_URL` and
`LAVA_FAIL_URL`, and `create_invoice()` uses `LAVA_SECRET_KEY` when no key
is passed. Non-200 replies raise `LavaError`.

## Rendering pages

`Engine(Config(...))` renders a component with `view(component, props,
request)`: JSON for XHR requests sent with `X-Inertia: true`, otherwise the
Jinja template `<template>.html` under `Config.root`, given `Inertia`,
`Ziggy` and `Vite` values plus anything added with `with_view_data`.
`middleware(request)` answers 409 when an XHR client's asset version
(`hash_dir` of the assets path) is stale, and `adjust_redirect` turns a 302
after PUT, PATCH or DELETE into 303. Requests and responses are the plain
`InertiaRequest` and `InertiaResponse` dataclasses.

`vite(entrypoints, build_dir)` emits tags from the dev server's
`public/hot` file when it exists, otherwise from
`public/build/manifest.json`.

## What this package does not do

It is a library only: it has no command, starts no HTTP server and defines
no routes or request handlers; the caller wires `Engine`, the repositories
and `OrderService` into a web framework. It sends no Telegram or other
notifications, and it has no built-in translation service. It creates no
database schema by itself and ships no migrations.