"""Crypto Protocol Auditor agent API."""
