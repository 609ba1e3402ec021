from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from .config import DB_PATH
from .logic.loading_context import LoadingContext
from .logic.package_range import coerce_int, loading_status, pending_count
from .logic.persistence import diff_packages


logger = logging.getLogger(__name__)


class DataManager:
    """Simple wrapper for all database interactions."""

    def __init__(self, db_path: str = DB_PATH) -> None:
        self.db_path = db_path

    # --- Parties ----------------------------------------------------------
    def add_consignor(self, name: str) -> int:
        with sqlite3.connect(self.db_path) as conn:
            cur = conn.cursor()
            cur.execute("INSERT INTO consignors (name) VALUES (?)", (name,))
            conn.commit()
            return int(cur.lastrowid)

    def add_consignee(self, name: str) -> int:
        with sqlite3.connect(self.db_path) as conn:
            cur = conn.cursor()
            cur.execute("INSERT INTO consignees (name) VALUES (?)", (name,))
            conn.commit()
            return int(cur.lastrowid)

    # --- Shipments ----------------------------------------------------------
    def add_shipment(
        self,
        gc_no: str,
        consignor_id: int,
        consignee_id: int,
        quantity: int,
        start_number: int = 1,
        storage_location: str = "",
        destination: str = "",
        content_groups: Optional[Iterable[Dict[str, object]]] = None,
        gc_date: Optional[str] = None,
    ) -> None:
        """Insert a GC entry and its content lines.

        Each content group is a dict with ``group_id``, ``packing_label``,
        ``content_label``, ``start_number`` and ``quantity``.
        """
        gc_date = gc_date or datetime.now().date().isoformat()
        with sqlite3.connect(self.db_path) as conn:
            cur = conn.cursor()
            cur.execute(
                "INSERT INTO shipments (gc_no, gc_date, storage_location, destination, consignor_id,"
                " consignee_id, quantity, start_number) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (gc_no, gc_date, storage_location, destination, consignor_id, consignee_id, quantity, start_number),
            )
            rows = [
                (
                    gc_no,
                    str(group.get("group_id") or f"{gc_no}-{pos + 1}"),
                    pos,
                    group.get("packing_label") or "",
                    group.get("content_label") or "",
                    None if group.get("start_number") is None else str(group.get("start_number")),
                    None if group.get("quantity") is None else str(group.get("quantity")),
                )
                for pos, group in enumerate(content_groups or [])
            ]
            if rows:
                cur.executemany(
                    "INSERT INTO content_groups (gc_no, group_id, position, packing_label, content_label,"
                    " start_number, quantity) VALUES (?, ?, ?, ?, ?, ?, ?)",
                    rows,
                )
            conn.commit()
        logger.info("GC %s added with %d content groups", gc_no, len(rows))

    def _content_groups(self, cur: sqlite3.Cursor, gc_no: str) -> List[Dict[str, object]]:
        cur.execute(
            "SELECT group_id, packing_label, content_label, start_number, quantity"
            " FROM content_groups WHERE gc_no=? ORDER BY position, id",
            (gc_no,),
        )
        return [dict(row) for row in cur.fetchall()]

    def _shipment_dict(self, cur: sqlite3.Cursor, row: sqlite3.Row) -> Dict[str, object]:
        data = dict(row)
        try:
            data["loaded_packages"] = json.loads(data.get("loaded_packages") or "[]")
        except json.JSONDecodeError:
            logger.error("GC %s has unreadable loaded_packages, treating as empty", data["gc_no"])
            data["loaded_packages"] = []
        data["sender_id"] = data.get("consignor_id")
        data["receiver_id"] = data.get("consignee_id")
        data["content_groups"] = self._content_groups(cur, data["gc_no"])
        return data

    def fetch_shipment_by_id(self, gc_no: str) -> Optional[Dict[str, object]]:
        """Return the GC with its content groups and saved packages, or ``None``."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            cur = conn.cursor()
            cur.execute("SELECT * FROM shipments WHERE gc_no=?", (gc_no,))
            row = cur.fetchone()
            if row is None:
                return None
            return self._shipment_dict(cur, row)

    def _declared_total(self, cur: sqlite3.Cursor, gc_no: str, fallback: int) -> int:
        groups = self._content_groups(cur, gc_no)
        if not groups:
            return fallback
        return sum(max(coerce_int(g["quantity"], 0), 0) for g in groups)

    # --- Loading progress -------------------------------------------------
    def save_loading_progress(
        self,
        gc_no: str,
        payload: List[Dict[str, object]],
        expected_revision: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> Optional[int]:
        """Store ``payload`` as the loaded packages of ``gc_no``.

        With ``expected_revision`` the write only happens if nobody saved
        since that revision was read; ``None`` is returned on a conflict.
        Returns the new revision on success. Raises ``KeyError`` for an
        unknown GC.
        """
        new_json = json.dumps(payload)
        changed_at = datetime.now().isoformat()
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            cur = conn.cursor()
            cur.execute(
                "SELECT quantity, start_number, loaded_packages, loading_status, loading_revision"
                " FROM shipments WHERE gc_no=?",
                (gc_no,),
            )
            row = cur.fetchone()
            if row is None:
                raise KeyError(gc_no)

            # only packages inside a current content group count as loaded
            counted = LoadingContext.hydrate(
                {
                    "gc_no": gc_no,
                    "quantity": row["quantity"],
                    "start_number": row["start_number"],
                    "content_groups": self._content_groups(cur, gc_no),
                    "loaded_packages": payload,
                },
                warn=False,
            )
            total = counted.total_quantity
            loaded = counted.loaded_count
            status = loading_status(total, loaded)

            query = (
                "UPDATE shipments SET loaded_packages=?, loaded_count=?, loading_status=?,"
                " loading_revision=loading_revision + 1 WHERE gc_no=?"
            )
            params: List[object] = [new_json, loaded, status, gc_no]
            if expected_revision is not None:
                query += " AND loading_revision=?"
                params.append(expected_revision)
            cur.execute(query, params)
            if cur.rowcount == 0:
                conn.rollback()
                logger.warning(
                    "GC %s save rejected: revision %s expected, store has %s",
                    gc_no, expected_revision, row["loading_revision"],
                )
                return None

            old_payload = json.loads(row["loaded_packages"] or "[]")
            added, removed = diff_packages(old_payload, payload)
            cur.execute(
                "INSERT INTO loading_audit (gc_no, user_id, changed_at, old_packages, new_packages,"
                " added_count, removed_count, old_status, new_status) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    gc_no, user_id, changed_at, row["loaded_packages"], new_json,
                    added, removed, row["loading_status"], status,
                ),
            )
            conn.commit()
            new_revision = int(row["loading_revision"]) + 1
        logger.info("GC %s loading progress saved: %d loaded, status %s", gc_no, loaded, status)
        return new_revision

    def get_loading_revision(self, gc_no: str) -> Optional[int]:
        with sqlite3.connect(self.db_path) as conn:
            cur = conn.cursor()
            cur.execute("SELECT loading_revision FROM shipments WHERE gc_no=?", (gc_no,))
            row = cur.fetchone()
        return int(row[0]) if row else None

    def get_loading_audit(self, gc_no: str) -> List[Dict[str, object]]:
        """Return the save history of ``gc_no``, oldest first."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            cur = conn.cursor()
            cur.execute(
                "SELECT * FROM loading_audit WHERE gc_no=? ORDER BY audit_id",
                (gc_no,),
            )
            rows = [dict(row) for row in cur.fetchall()]
        for row in rows:
            row["old_packages"] = json.loads(row["old_packages"])
            row["new_packages"] = json.loads(row["new_packages"])
        return rows

    # --- Loading sheet / print batches -----------------------------------
    def list_loading_sheet(self, pending_only: bool = True) -> List[Dict[str, object]]:
        """Rows for the loading sheet table: GC, parties, total, loaded, pending.

        ``anomaly`` is set when more packages are loaded than currently
        declared (a group quantity was lowered after loading); ``pending``
        is then 0 and a :class:`DataAnomaly` warning is issued.
        """
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            cur = conn.cursor()
            query = (
                "SELECT s.gc_no, s.storage_location, s.destination, s.quantity, s.loaded_count,"
                " s.loading_status, c.name AS consignor_name, e.name AS consignee_name"
                " FROM shipments s"
                " JOIN consignors c ON c.consignor_id = s.consignor_id"
                " JOIN consignees e ON e.consignee_id = s.consignee_id"
            )
            if pending_only:
                query += " WHERE s.loading_status != 'LOADED'"
            query += " ORDER BY s.gc_date, s.gc_no"
            cur.execute(query)
            rows = [dict(row) for row in cur.fetchall()]
            for row in rows:
                total = self._declared_total(cur, row["gc_no"], int(row["quantity"]))
                row["total"] = total
                loaded = int(row["loaded_count"])
                row["anomaly"] = loaded > total
                row["pending"] = pending_count(total, loaded)
        return rows

    def fetch_print_batch(
        self,
        shipment_ids: Optional[Iterable[str]] = None,
        match_all_filters: bool = False,
        filters: Optional[Dict[str, object]] = None,
    ) -> List[Dict[str, object]]:
        """Return hydrated GC + consignor + consignee records for printing.

        With ``match_all_filters`` the whole filtered set is resolved here in
        one query instead of trusting the caller's visible page.
        """
        filters = dict(filters or {})
        query = (
            "SELECT s.*, c.name AS consignor_name, e.name AS consignee_name"
            " FROM shipments s"
            " JOIN consignors c ON c.consignor_id = s.consignor_id"
            " JOIN consignees e ON e.consignee_id = s.consignee_id WHERE 1=1"
        )
        params: List[object] = []
        if match_all_filters:
            if filters.get("storage_location"):
                query += " AND UPPER(s.storage_location)=UPPER(?)"
                params.append(filters["storage_location"])
            if filters.get("sender_id") is not None:
                query += " AND s.consignor_id=?"
                params.append(filters["sender_id"])
            if filters.get("receiver_id") is not None:
                query += " AND s.consignee_id=?"
                params.append(filters["receiver_id"])
            if filters.get("pending_only"):
                query += " AND s.loading_status != 'LOADED'"
            excluded = list(filters.get("exclude_ids") or [])
            if excluded:
                query += f" AND s.gc_no NOT IN ({','.join('?' for _ in excluded)})"
                params.extend(excluded)
        else:
            ids = list(shipment_ids or [])
            if not ids:
                return []
            query += f" AND s.gc_no IN ({','.join('?' for _ in ids)})"
            params.extend(ids)
        query += " ORDER BY s.gc_no"

        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            cur = conn.cursor()
            cur.execute(query, params)
            records = []
            for row in cur.fetchall():
                data = self._shipment_dict(cur, row)
                data["consignor"] = {"id": data["consignor_id"], "name": data.pop("consignor_name")}
                data["consignee"] = {"id": data["consignee_id"], "name": data.pop("consignee_name")}
                records.append(data)
        return records

