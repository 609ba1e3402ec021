from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Tuple

from gc_loading.config import DEFAULT_CONTENTS, DEFAULT_PACKING
from gc_loading.errors import DataAnomaly, RangeOutOfBounds

logger = logging.getLogger(__name__)

STATUS_PENDING = "PENDING"
STATUS_PARTIAL = "PARTIAL"
STATUS_LOADED = "LOADED"


def coerce_int(value, default: int) -> int:
    """Parse ``value`` leniently, returning ``default`` for blanks/garbage."""
    if value is None:
        return default
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        try:
            return int(float(str(value).strip()))
        except ValueError:
            return default


@dataclass(frozen=True)
class ContentGroup:
    """One packing/content line of a shipment with its own number range."""

    group_id: str
    packing_label: str
    content_label: str
    start_number: int = 1
    quantity: int = 0

    def __post_init__(self) -> None:
        if self.start_number < 1:
            raise ValueError(f"start_number must be >= 1, got {self.start_number}")
        if self.quantity < 0:
            raise ValueError(f"quantity must be >= 0, got {self.quantity}")

    @property
    def end_number(self) -> int:
        """Last package number, or ``start_number - 1`` for an empty group."""
        return self.start_number + self.quantity - 1

    @classmethod
    def from_record(cls, record: Mapping[str, object]) -> "ContentGroup":
        """Build a group from a stored content-item record.

        Quantity and start number arrive as free text from the GC entry
        form; blanks fall back to 0 and 1 respectively.
        """
        start = coerce_int(record.get("start_number"), 1)
        return cls(
            group_id=str(record.get("group_id") or ""),
            packing_label=str(record.get("packing_label") or DEFAULT_PACKING),
            content_label=str(record.get("content_label") or DEFAULT_CONTENTS),
            start_number=start if start >= 1 else 1,
            quantity=max(coerce_int(record.get("quantity"), 0), 0),
        )


def range_of(group: ContentGroup) -> range:
    """Return the ordinal range covered by ``group`` (empty if quantity <= 0)."""
    if group.quantity <= 0:
        return range(group.start_number, group.start_number)
    return range(group.start_number, group.start_number + group.quantity)


def count_in(rng: range, selection: Iterable[int]) -> int:
    """Number of ``selection`` members that fall inside ``rng``."""
    return sum(1 for number in set(selection) if number in rng)


def pending_count(total: int, loaded: int) -> int:
    """Packages still to load, never negative.

    ``loaded > total`` means the stored data is inconsistent; a
    :class:`DataAnomaly` warning is issued so callers can flag it.
    """
    if loaded > total:
        logger.warning("Loaded count %s exceeds declared quantity %s", loaded, total)
        warnings.warn(
            DataAnomaly(f"{loaded} packages loaded but only {total} declared"),
            stacklevel=2,
        )
    return max(0, total - loaded)


def loading_status(total: int, loaded: int) -> str:
    """Return PENDING, PARTIAL or LOADED for a shipment/group."""
    if loaded <= 0:
        return STATUS_PENDING
    if loaded < total:
        return STATUS_PARTIAL
    return STATUS_LOADED


def contiguous_runs(numbers: Iterable[int]) -> List[Tuple[int, int]]:
    """Collapse ``numbers`` into sorted inclusive ``(start, end)`` runs."""
    runs: List[Tuple[int, int]] = []
    for number in sorted(set(numbers)):
        if runs and number == runs[-1][1] + 1:
            runs[-1] = (runs[-1][0], number)
        else:
            runs.append((number, number))
    return runs


def format_runs(numbers: Iterable[int]) -> str:
    """Human readable form, e.g. ``"1-5, 8, 10-12"``."""
    parts = []
    for start, end in contiguous_runs(numbers):
        parts.append(str(start) if start == end else f"{start}-{end}")
    return ", ".join(parts)


def parse_package_number(value) -> int:
    """Parse operator input into a package number.

    Unlike :func:`coerce_int` this never guesses: blank or non-numeric text is
    an operator mistake and raises :class:`RangeOutOfBounds`.
    """
    if isinstance(value, bool):
        raise RangeOutOfBounds("Invalid numbers.")
    if isinstance(value, int):
        return value
    text = str(value if value is not None else "").strip()
    try:
        return int(text)
    except ValueError:
        raise RangeOutOfBounds("Invalid numbers.") from None
