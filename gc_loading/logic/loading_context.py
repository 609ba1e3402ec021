"""Loading context for one shipment and the multi-group coordinator.

A :class:`LoadingContext` is the whole state of one open "select
quantities" session: the shipment's content groups, one selection set per
group, which group tab is active and any drag gesture in progress. It is
owned by a single session and must be thrown away after save or cancel.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, FrozenSet, Iterable, List, Mapping, Optional, Set

from gc_loading.config import DEFAULT_CONTENTS, DEFAULT_PACKING
from gc_loading.errors import DataAnomaly, SessionClosed
from gc_loading.logic.package_range import (
    ContentGroup,
    coerce_int,
    count_in,
    loading_status,
    pending_count,
    range_of,
)

if TYPE_CHECKING:
    from gc_loading.logic.selection import DragSession

logger = logging.getLogger(__name__)

DEFAULT_GROUP_ID = "default"


def _package_numbers(shipment_id: str, values: Iterable[object]) -> List[int]:
    numbers = []
    for value in values:
        if isinstance(value, int) and not isinstance(value, bool):
            numbers.append(value)
            continue
        try:
            numbers.append(int(str(value).strip()))
        except ValueError:
            logger.error("GC %s has unreadable saved package %r, skipping it", shipment_id, value)
    return numbers


@dataclass
class LoadingContext:
    shipment_id: str
    groups: List[ContentGroup]
    selections: Dict[str, Set[int]] = field(default_factory=dict)
    active_group_id: Optional[str] = None
    drag: Optional["DragSession"] = None
    revision: int = 0
    closed: bool = False
    # Stored packages whose content group no longer exists on the GC.
    orphans: Dict[str, List[int]] = field(default_factory=dict)
    # Stored packages outside their group's current range. Never saved back.
    out_of_range: Dict[str, List[int]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.groups:
            raise ValueError(f"GC {self.shipment_id} has no content groups")
        ids = [g.group_id for g in self.groups]
        if len(set(ids)) != len(ids):
            raise ValueError(f"GC {self.shipment_id} has duplicate content group ids")
        for gid in ids:
            self.selections.setdefault(gid, set())
        if self.active_group_id is None:
            self.active_group_id = ids[0]

    # ------------------------------------------------------------------
    @classmethod
    def hydrate(cls, record: Mapping[str, object], warn: bool = True) -> "LoadingContext":
        """Build a context from a ``DataManager.fetch_shipment_by_id`` record.

        Saved numbers outside their group's range (the declared quantity was
        lowered after loading) are set aside in ``out_of_range`` and a
        :class:`DataAnomaly` warning is issued.
        """
        shipment_id = str(record["gc_no"])
        raw_groups = list(record.get("content_groups") or [])
        if raw_groups:
            groups = [ContentGroup.from_record(r) for r in raw_groups]
        else:
            # GCs entered before content lines existed carry one implicit group.
            start = coerce_int(record.get("start_number"), 1)
            groups = [
                ContentGroup(
                    group_id=DEFAULT_GROUP_ID,
                    packing_label=DEFAULT_PACKING,
                    content_label=DEFAULT_CONTENTS,
                    start_number=start if start >= 1 else 1,
                    quantity=max(coerce_int(record.get("quantity"), 0), 0),
                )
            ]

        ctx = cls(
            shipment_id=shipment_id,
            groups=groups,
            revision=int(record.get("loading_revision") or 0),
        )
        ctx._load_saved(record.get("loaded_packages") or [])
        if ctx.out_of_range and warn:
            warnings.warn(
                DataAnomaly(f"GC {shipment_id} has saved packages outside the declared ranges: {ctx.out_of_range}"),
                stacklevel=2,
            )
        return ctx

    def _add_saved(self, group_id: str, packages: List[int]) -> None:
        rng = range_of(self.group(group_id))
        inside = [n for n in packages if n in rng]
        outside = [n for n in packages if n not in rng]
        self.selections[group_id].update(inside)
        if outside:
            logger.warning(
                "GC %s: saved packages %s are outside group %s (%s-%s)",
                self.shipment_id, outside, group_id, rng.start, rng.stop - 1,
            )
            self.out_of_range.setdefault(group_id, []).extend(outside)

    def _load_saved(self, saved: List[object]) -> None:
        known = {g.group_id for g in self.groups}
        legacy: List[object] = []
        for entry in saved:
            if isinstance(entry, Mapping):
                item_id = str(entry.get("itemId"))
                packages = _package_numbers(self.shipment_id, entry.get("packages") or [])
                if item_id in known:
                    self._add_saved(item_id, packages)
                else:
                    logger.warning(
                        "GC %s: %d saved packages reference unknown content item %s",
                        self.shipment_id, len(packages), item_id,
                    )
                    self.orphans.setdefault(item_id, []).extend(packages)
            else:
                # legacy flat list: belongs to the first group
                legacy.append(entry)
        if legacy:
            self._add_saved(self.groups[0].group_id, _package_numbers(self.shipment_id, legacy))

    # ------------------------------------------------------------------
    def ensure_open(self) -> None:
        if self.closed:
            raise SessionClosed(f"Loading session for GC {self.shipment_id} is closed")

    def close(self) -> None:
        self.drag = None
        self.closed = True

    def group(self, group_id: str) -> ContentGroup:
        for g in self.groups:
            if g.group_id == group_id:
                return g
        raise KeyError(group_id)

    @property
    def active_group(self) -> ContentGroup:
        return self.group(self.active_group_id)

    def selection_of(self, group_id: str) -> Set[int]:
        self.group(group_id)
        return self.selections[group_id]

    @property
    def selection(self) -> FrozenSet[int]:
        """Union of every group's selected numbers."""
        union: Set[int] = set()
        for numbers in self.selections.values():
            union |= numbers
        return frozenset(union)

    @property
    def loaded_count(self) -> int:
        return sum(len(numbers) for numbers in self.selections.values())

    @property
    def total_quantity(self) -> int:
        return sum(g.quantity for g in self.groups)

    @property
    def anomaly(self) -> bool:
        return bool(self.out_of_range) or self.loaded_count > self.total_quantity

    def payload(self) -> List[Dict[str, object]]:
        """Selection in its stored shape, one entry per non-empty group.

        Orphaned items are written back untouched; out-of-range numbers are
        dropped.
        """
        result: List[Dict[str, object]] = []
        for g in self.groups:
            numbers = self.selections.get(g.group_id)
            if numbers:
                result.append({"itemId": g.group_id, "packages": sorted(numbers)})
        for item_id, numbers in self.orphans.items():
            result.append({"itemId": item_id, "packages": sorted(set(numbers))})
        return result


@dataclass(frozen=True)
class GroupSummary:
    group: ContentGroup
    selected: int
    complete: bool

    @property
    def label(self) -> str:
        return f"{self.group.packing_label} {self.selected}/{self.group.quantity}"


class MultiGroupCoordinator:
    """Tracks the active content group tab and per-group completion."""

    def __init__(self, context: LoadingContext) -> None:
        self.context = context

    @property
    def active_group(self) -> ContentGroup:
        return self.context.active_group

    @property
    def has_multiple_groups(self) -> bool:
        return len(self.context.groups) > 1

    def activate(self, group_id: str) -> ContentGroup:
        """Switch the visible tab. Selections are left untouched."""
        self.context.ensure_open()
        group = self.context.group(group_id)
        self.context.drag = None
        self.context.active_group_id = group_id
        return group

    def completion_of(self, group_id: str) -> bool:
        group = self.context.group(group_id)
        rng = range_of(group)
        return group.quantity > 0 and count_in(rng, self.context.selection_of(group_id)) == group.quantity

    def group_summaries(self) -> List[GroupSummary]:
        return [
            GroupSummary(
                group=g,
                selected=len(self.context.selection_of(g.group_id)),
                complete=self.completion_of(g.group_id),
            )
            for g in self.context.groups
        ]

    # --- shipment level -----------------------------------------------
    @property
    def loaded_count(self) -> int:
        return self.context.loaded_count

    @property
    def total_quantity(self) -> int:
        return self.context.total_quantity

    @property
    def pending_count(self) -> int:
        return pending_count(self.total_quantity, self.loaded_count)

    @property
    def anomaly(self) -> bool:
        return self.context.anomaly

    @property
    def status(self) -> str:
        return loading_status(self.total_quantity, self.loaded_count)
