"""Adapters binding the core ports to SQLite, HTTP feeds, and Telegram."""
