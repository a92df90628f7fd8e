"""Shared helpers: path handling and logging setup."""
