"""Shared utilities: logging and HTTP helpers."""
