from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, FrozenSet, Iterable, List, Optional

from gc_loading.errors import RecognitionFailure
from gc_loading.logic.loading_context import LoadingContext
from gc_loading.logic.package_range import range_of
from gc_loading.logic.recognition import recognize_package_numbers

logger = logging.getLogger(__name__)

Recognizer = Callable[[str], Iterable[int]]


@dataclass(frozen=True)
class ScanMergeResult:
    merged: FrozenSet[int]
    added: List[int]
    dropped: List[int]


def merge_scan_result(
    recognized: Iterable[int],
    group_range: range,
    current: Iterable[int] = (),
) -> ScanMergeResult:
    """Union ``current`` with the recognized numbers that fall in ``group_range``.

    Numbers outside the range are treated as OCR noise and dropped; they are
    returned so the caller can tell the operator how many were ignored.
    """
    current_set = set(current)
    recognized_set = set(recognized)
    accepted = {n for n in recognized_set if n in group_range}
    dropped = sorted(recognized_set - accepted)
    added = sorted(accepted - current_set)
    return ScanMergeResult(merged=frozenset(current_set | accepted), added=added, dropped=dropped)


class ScanMergeAdapter:
    """Merges recognizer output into the active group of a loading context."""

    def __init__(self, context: LoadingContext, recognizer: Optional[Recognizer] = None) -> None:
        self.context = context
        self.recognizer = recognizer or recognize_package_numbers

    def merge(self, recognized: Iterable[int]) -> ScanMergeResult:
        self.context.ensure_open()
        group = self.context.active_group
        selected = self.context.selection_of(group.group_id)
        result = merge_scan_result(recognized, range_of(group), selected)
        self.context.drag = None
        selected.update(result.added)
        if result.dropped:
            logger.warning(
                "GC %s: dropped %d scanned numbers outside %s-%s: %s",
                self.context.shipment_id, len(result.dropped),
                group.start_number, group.end_number, result.dropped,
            )
        return result

    def scan(self, image_path: str | Path) -> ScanMergeResult:
        """Recognize ``image_path`` and merge the result.

        Any recognizer error becomes :class:`RecognitionFailure` and the
        selection is left untouched.
        """
        self.context.ensure_open()
        try:
            numbers = list(self.recognizer(str(image_path)))
        except Exception as exc:
            logger.exception("Recognition failed for %s", image_path)
            raise RecognitionFailure(f"Failed to process image: {exc}") from exc
        return self.merge(numbers)
