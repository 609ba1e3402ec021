"""Exceptions raised by the loading engine.

Every error here is local to one shipment's loading session. The engine
raises them; the UI layer catches them and shows an inline message.
"""

from __future__ import annotations


class LoadingError(Exception):
    """Base class for loading engine errors."""


class RangeOutOfBounds(LoadingError, ValueError):
    """Explicit package range (or single number) is invalid for the group."""


class RecognitionFailure(LoadingError):
    """The image recognizer could not produce package numbers."""


class PersistenceError(LoadingError):
    """Saving loading progress failed; the local selection is kept."""


class StaleSelection(PersistenceError):
    """Another session saved this shipment after ours was opened."""

    def __init__(self, shipment_id: str, expected: int, actual: int | None) -> None:
        self.shipment_id = shipment_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"GC {shipment_id} was updated by someone else "
            f"(revision {actual}, opened at {expected}). Reopen it and try again."
        )


class SessionClosed(LoadingError):
    """The loading session was already saved or cancelled."""


class DataAnomaly(LoadingError, UserWarning):
    """Loaded count exceeds the declared quantity.

    Issued with :func:`warnings.warn`; it points at an upstream data-entry
    problem rather than an engine failure.
    """
