"""Errors shared by the storage backends."""

from __future__ import annotations


class DuplicateRecordError(ValueError):
    """Raised when inserting a record whose key already exists."""
