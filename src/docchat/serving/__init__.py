"""Serving — HTTP API and KServe runtime."""
