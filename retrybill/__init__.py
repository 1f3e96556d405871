"""Hosting billing core: storage, catalog, orders, balances, currency rates, payments and page rendering."""

__version__ = "0.1.0"