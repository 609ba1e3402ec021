from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping, Optional, Set

import pandas as pd

from gc_loading.config import DEFAULT_CONTENTS, DEFAULT_PACKING
from gc_loading.logic.package_range import coerce_int, format_runs

if TYPE_CHECKING:
    from gc_loading.data_manager import DataManager

logger = logging.getLogger(__name__)

MISSING_LOCATION = "N/A"


@dataclass
class LoadListGroup:
    storage_location: str
    sender_name: str
    receiver_name: str
    total_quantity: int
    start_number: int
    end_number: Optional[int]
    package_numbers: List[int]
    gc_numbers: List[str]
    primary_gc: str
    packing_label: str
    content_label: str

    @property
    def package_range_label(self) -> str:
        return format_runs(self.package_numbers) or "-"


@dataclass
class LoadList:
    groups: List[LoadListGroup] = field(default_factory=list)

    @property
    def grand_total(self) -> int:
        return sum(g.total_quantity for g in self.groups)

    @property
    def gc_count(self) -> int:
        return sum(len(g.gc_numbers) for g in self.groups)


def _gc_sort_key(gc_no: str):
    text = str(gc_no)
    return (0, int(text), text) if text.isdigit() else (1, 0, text)


def _first_label(record: Mapping[str, object], key: str, default: str) -> str:
    groups = record.get("content_groups") or []
    if groups:
        return str(groups[0].get(key) or default)
    return default


def _records_frame(records: Iterable[Mapping[str, object]]) -> pd.DataFrame:
    rows = []
    for position, rec in enumerate(records):
        sender = rec.get("consignor") or {}
        receiver = rec.get("consignee") or {}
        location = str(rec.get("storage_location") or "").strip()
        rows.append({
            "position": position,
            "gc_no": str(rec.get("gc_no")),
            "storage_location": location or MISSING_LOCATION,
            "sender_id": rec.get("sender_id", sender.get("id")),
            "receiver_id": rec.get("receiver_id", receiver.get("id")),
            "sender_name": sender.get("name", ""),
            "receiver_name": receiver.get("name", ""),
            "quantity": max(coerce_int(rec.get("quantity"), 0), 0),
            "start_number": max(coerce_int(rec.get("start_number"), 1), 1),
            "packing_label": _first_label(rec, "packing_label", DEFAULT_PACKING),
            "content_label": _first_label(rec, "content_label", DEFAULT_CONTENTS),
        })
    return pd.DataFrame(rows)


def aggregate_load_list(records: Iterable[Mapping[str, object]]) -> LoadList:
    """Group GC records into load list lines.

    One line per ``(storage location, sender, receiver)``. Quantities are
    summed and the line shows one contiguous package range starting at the
    lowest start number of its GCs. Loading status is not considered.
    """
    df = _records_frame(records)
    if df.empty:
        return LoadList()

    result = LoadList()
    grouped = df.groupby(["storage_location", "sender_id", "receiver_id"], sort=False, dropna=False)
    for _, part in grouped:
        part = part.sort_values("position")
        first = part.iloc[0]
        total = int(part["quantity"].sum())
        start = int(part["start_number"].min())
        end = start + total - 1 if total > 0 else None
        gc_numbers = sorted(part["gc_no"].tolist(), key=_gc_sort_key)
        result.groups.append(
            LoadListGroup(
                storage_location=str(first["storage_location"]),
                sender_name=str(first["sender_name"]),
                receiver_name=str(first["receiver_name"]),
                total_quantity=total,
                start_number=start,
                end_number=end,
                package_numbers=list(range(start, end + 1)) if end is not None else [],
                gc_numbers=gc_numbers,
                primary_gc=gc_numbers[0],
                packing_label=str(first["packing_label"]),
                content_label=str(first["content_label"]),
            )
        )
    logger.info("Load list built: %d lines, %d packages", len(result.groups), result.grand_total)
    return result


@dataclass
class PrintSelection:
    """Which GCs the operator picked for printing.

    In ``select_all_mode`` the selection means "everything matching
    ``filters`` except ``excluded_ids``" and is resolved by the store, so
    rows on pages the operator never opened are included.
    """

    select_all_mode: bool = False
    selected_ids: Set[str] = field(default_factory=set)
    excluded_ids: Set[str] = field(default_factory=set)
    filters: Dict[str, object] = field(default_factory=dict)

    def toggle(self, gc_no: str) -> None:
        target = self.excluded_ids if self.select_all_mode else self.selected_ids
        if gc_no in target:
            target.discard(gc_no)
        else:
            target.add(gc_no)

    def is_selected(self, gc_no: str) -> bool:
        if self.select_all_mode:
            return gc_no not in self.excluded_ids
        return gc_no in self.selected_ids

    def select_all(self, filters: Optional[Dict[str, object]] = None) -> None:
        self.select_all_mode = True
        self.filters = dict(filters or {})
        self.excluded_ids.clear()
        self.selected_ids.clear()

    def clear(self) -> None:
        self.select_all_mode = False
        self.selected_ids.clear()
        self.excluded_ids.clear()

    def count(self, total: int) -> int:
        """Number of selected GCs given ``total`` rows match the filters."""
        if self.select_all_mode:
            return max(total - len(self.excluded_ids), 0)
        return len(self.selected_ids)

    def resolve(self, data_manager: "DataManager") -> List[Dict[str, object]]:
        if self.select_all_mode:
            filters = dict(self.filters)
            filters["exclude_ids"] = sorted(self.excluded_ids)
            return data_manager.fetch_print_batch(match_all_filters=True, filters=filters)
        return data_manager.fetch_print_batch(shipment_ids=sorted(self.selected_ids))
