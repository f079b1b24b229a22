"""Exception types shared across the matching and alerting pipeline."""

from __future__ import annotations


class PetMatchError(Exception):
    """Base class for pipeline errors."""


class InputError(PetMatchError):
    """A single item was rejected (missing photos, wrong report kind, ...)."""


class DimensionMismatchError(InputError):
    """Two embeddings cannot be compared."""


class ProviderError(PetMatchError):
    """Embedding extraction failed for a photo."""


class TransientFetchError(PetMatchError):
    """Reports could not be fetched; retry on the next cycle."""
