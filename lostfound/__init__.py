"""Lifecycle, audit ledger and maintenance core for lost-and-found items."""

__version__ = "0.1.0"
