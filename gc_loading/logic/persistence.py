"""Commit a loading session to the store."""

from __future__ import annotations

import logging
import sqlite3
import warnings
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Tuple

from gc_loading import config
from gc_loading.errors import DataAnomaly, PersistenceError, StaleSelection
from gc_loading.logic.loading_context import LoadingContext
from gc_loading.logic.package_range import loading_status, pending_count

if TYPE_CHECKING:
    from gc_loading.data_manager import DataManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommittedProgress:
    """What the store holds after a successful save."""

    shipment_id: str
    packages: Dict[str, List[int]]
    loaded: int
    total: int
    pending: int
    status: str
    anomaly: bool
    revision: int


def diff_packages(old: Iterable[object], new: Iterable[object]) -> Tuple[int, int]:
    """Count packages added and removed between two stored payloads."""

    def _flatten(payload: Iterable[object]) -> set:
        keys = set()
        for entry in payload:
            if isinstance(entry, dict):
                item = str(entry.get("itemId"))
                keys.update((item, int(p)) for p in entry.get("packages") or [])
            else:
                keys.add((None, int(entry)))
        return keys

    old_keys = _flatten(old)
    new_keys = _flatten(new)
    return len(new_keys - old_keys), len(old_keys - new_keys)


class ProgressPersistenceGateway:
    def __init__(self, data_manager: "DataManager", last_write_wins: Optional[bool] = None) -> None:
        self.dm = data_manager
        self.last_write_wins = config.LAST_WRITE_WINS if last_write_wins is None else last_write_wins

    def save(self, context: LoadingContext, user_id: Optional[int] = None) -> CommittedProgress:
        """Write the context's selection and close it.

        On any failure the context stays open with its selection intact so
        the operator can retry or cancel.
        """
        context.ensure_open()
        payload = context.payload()
        expected = None if self.last_write_wins else context.revision
        try:
            revision = self.dm.save_loading_progress(
                context.shipment_id, payload, expected_revision=expected, user_id=user_id
            )
        except KeyError as exc:
            logger.error("Save failed, GC %s no longer exists", context.shipment_id)
            raise PersistenceError(f"GC {context.shipment_id} not found") from exc
        except sqlite3.Error as exc:
            logger.exception("Save failed for GC %s", context.shipment_id)
            raise PersistenceError(f"Failed to save loading for GC {context.shipment_id}: {exc}") from exc

        if revision is None:
            raise StaleSelection(
                context.shipment_id, context.revision, self.dm.get_loading_revision(context.shipment_id)
            )

        total = context.total_quantity
        loaded = context.loaded_count
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always", DataAnomaly)
            pending = pending_count(total, loaded)
        anomaly = context.anomaly or any(issubclass(w.category, DataAnomaly) for w in caught)

        context.revision = revision
        context.close()
        logger.info(
            "GC %s committed at revision %d: %d/%d loaded", context.shipment_id, revision, loaded, total
        )
        return CommittedProgress(
            shipment_id=context.shipment_id,
            packages={entry["itemId"]: list(entry["packages"]) for entry in payload},
            loaded=loaded,
            total=total,
            pending=pending,
            status=loading_status(total, loaded),
            anomaly=anomaly,
            revision=revision,
        )
