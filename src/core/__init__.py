"""Core domain package for jobwire.

Core contains ingestion, deduplication, fan-out, and connection recovery logic
without any Telegram, HTTP, or storage-specific code, keeping the business
logic portable.
"""
