"""Types shared by the storage backends."""

from __future__ import annotations

from typing import Any, Callable

# Mutators receive a private copy of the stored listing, change it in place and
# return it. Backends with optimistic concurrency may call them more than once.
ListingMutator = Callable[[dict[str, Any]], dict[str, Any]]
