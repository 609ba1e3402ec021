"""Package selection state machine.

Implements the operator actions of the "select quantities" dialog on top of
a :class:`~gc_loading.logic.loading_context.LoadingContext`:

* click a package cell to toggle it,
* press and drag across cells to select or deselect a run,
* type a ``from``/``to`` range,
* select or deselect a whole content group.

Every action is confined to one content group's number range so a gesture
on one tab can never mark packages of another group.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, Optional

from gc_loading.errors import RangeOutOfBounds
from gc_loading.logic.loading_context import LoadingContext
from gc_loading.logic.package_range import ContentGroup, parse_package_number, range_of

logger = logging.getLogger(__name__)


class DragAction(Enum):
    SELECT = "SELECT"
    DESELECT = "DESELECT"


@dataclass(frozen=True)
class DragSession:
    """One press-drag-release gesture over the package grid."""

    group_id: str
    anchor_number: int
    action: DragAction
    baseline: FrozenSet[int]


class PointerKind(Enum):
    PRESS = "press"
    ENTER = "enter"
    RELEASE = "release"
    LEAVE = "leave"


@dataclass(frozen=True)
class PointerEvent:
    """Toolkit-neutral pointer event delivered by the host UI.

    ``number`` is the package cell under the pointer (``None`` when the
    pointer is not over a cell, e.g. leaving the dialog).
    """

    kind: PointerKind
    number: Optional[int] = None
    additive: bool = False


def _apply(base: Iterable[int], action: DragAction, numbers: Iterable[int]) -> set:
    result = set(base)
    if action is DragAction.SELECT:
        result.update(numbers)
    else:
        result.difference_update(numbers)
    return result


class SelectionStateMachine:
    """Applies operator actions to the active group's selection."""

    def __init__(self, context: LoadingContext) -> None:
        self.context = context

    # ------------------------------------------------------------------
    def _group(self, group_id: Optional[str] = None) -> ContentGroup:
        self.context.ensure_open()
        return self.context.group(group_id) if group_id else self.context.active_group

    def _replace(self, group: ContentGroup, numbers: set) -> None:
        # Mutate in place so callers holding selection_of() see the change.
        current = self.context.selection_of(group.group_id)
        current.clear()
        current.update(numbers)

    def _check_in_group(self, number: int, group: ContentGroup) -> None:
        if number not in range_of(group):
            raise RangeOutOfBounds(
                f"Package {number} is not part of {group.packing_label} "
                f"({group.start_number} - {group.end_number})"
            )

    @property
    def dragging(self) -> bool:
        return self.context.drag is not None

    def is_selected(self, number: int, group_id: Optional[str] = None) -> bool:
        group = self._group(group_id)
        return number in self.context.selection_of(group.group_id)

    # --- single clicks --------------------------------------------------
    def toggle(self, number: int) -> bool:
        """Flip ``number`` in the active group and return its new state."""
        group = self._group()
        self._check_in_group(number, group)
        self.context.drag = None
        selected = self.context.selection_of(group.group_id)
        if number in selected:
            selected.discard(number)
            return False
        selected.add(number)
        return True

    # --- drag gestures --------------------------------------------------
    def begin_drag(self, number: int, additive: bool = False) -> DragSession:
        """Start a drag on ``number``.

        The action is fixed for the whole gesture: pressing a selected cell
        deselects, pressing an unselected cell selects. A plain press applies
        it to the anchor straight away (the click toggles); an additive
        press waits until the pointer moves.
        """
        group = self._group()
        self._check_in_group(number, group)
        baseline = frozenset(self.context.selection_of(group.group_id))
        action = DragAction.DESELECT if number in baseline else DragAction.SELECT
        session = DragSession(
            group_id=group.group_id,
            anchor_number=number,
            action=action,
            baseline=baseline,
        )
        self.context.drag = session
        if not additive:
            self._replace(group, _apply(baseline, action, [number]))
        return session

    def continue_drag(self, number: int) -> None:
        """Re-apply the drag action to the run between the anchor and ``number``.

        Always starts from the baseline captured on press, so moving back
        towards the anchor shrinks the affected run.
        """
        self.context.ensure_open()
        session = self.context.drag
        if session is None:
            return
        group = self.context.group(session.group_id)
        rng = range_of(group)
        low = max(min(session.anchor_number, number), rng.start)
        high = min(max(session.anchor_number, number), rng.stop - 1)
        span = range(low, high + 1) if low <= high else range(0)
        self._replace(group, _apply(session.baseline, session.action, span))

    def end_drag(self) -> None:
        self.context.drag = None

    def handle_pointer(self, event: PointerEvent) -> None:
        """Entry point for the host UI's pointer listeners."""
        if event.kind is PointerKind.PRESS and event.number is not None:
            self.begin_drag(event.number, event.additive)
        elif event.kind is PointerKind.ENTER and event.number is not None:
            self.continue_drag(event.number)
        elif event.kind in (PointerKind.RELEASE, PointerKind.LEAVE):
            self.end_drag()

    # --- bulk -------------------------------------------------------------
    def select_all(self, group_id: Optional[str] = None) -> None:
        group = self._group(group_id)
        self.context.drag = None
        self.context.selection_of(group.group_id).update(range_of(group))

    def deselect_all(self, group_id: Optional[str] = None) -> None:
        group = self._group(group_id)
        self.context.drag = None
        self.context.selection_of(group.group_id).clear()

    def is_all_selected(self, group_id: Optional[str] = None) -> bool:
        group = self._group(group_id)
        rng = range_of(group)
        selected = self.context.selection_of(group.group_id)
        return len(rng) > 0 and all(n in selected for n in rng)

    def toggle_all(self, group_id: Optional[str] = None) -> bool:
        """Select the whole group, or clear it if it is already complete."""
        if self.is_all_selected(group_id):
            self.deselect_all(group_id)
            return False
        self.select_all(group_id)
        return True

    def apply_explicit_range(self, from_, to, group_id: Optional[str] = None) -> range:
        """Select ``from_``..``to`` inclusive inside one group.

        Input is validated, never clamped: reversed, non-numeric or
        out-of-range bounds raise :class:`RangeOutOfBounds` and the
        selection is left as it was.
        """
        group = self._group(group_id)
        start = parse_package_number(from_)
        end = parse_package_number(to)
        if start > end:
            raise RangeOutOfBounds(f"'From' ({start}) must not be greater than 'To' ({end})")
        rng = range_of(group)
        if not rng or start < rng.start or end > rng.stop - 1:
            raise RangeOutOfBounds(f"Must be between {group.start_number} - {group.end_number}")
        span = range(start, end + 1)
        self.context.drag = None
        self.context.selection_of(group.group_id).update(span)
        logger.info(
            "GC %s: range %s-%s selected in group %s",
            self.context.shipment_id, start, end, group.group_id,
        )
        return span
