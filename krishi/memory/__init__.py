"""Remembered key/value facts."""
