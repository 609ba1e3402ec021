"""Loading sheet: pending GCs, their loaded counts and load list printing."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

import customtkinter as ctk
from tkinter import messagebox, ttk

from gc_loading.config import APPEARANCE_MODE, DB_PATH
from gc_loading.data_manager import DataManager
from gc_loading.logic import load_list_printer
from gc_loading.logic.load_list import PrintSelection, aggregate_load_list
from gc_loading.logic.persistence import CommittedProgress
from gc_loading.ui.qty_selection_dialog import QtySelectionDialog

logger = logging.getLogger(__name__)

COLUMNS = ("Print", "GC No", "Godown", "Consignor", "Consignee", "Total", "Loaded", "Pending", "Status")


class LoadingSheetWindow(ctk.CTk):
    def __init__(self, user_id: Optional[int] = None, db_path: str = DB_PATH):
        super().__init__()
        self.dm = DataManager(db_path)
        self.user_id = user_id
        self.title("Loading Sheet")
        self.geometry("1000x600")
        ctk.set_appearance_mode(APPEARANCE_MODE)

        self.rows: List[Dict[str, object]] = []
        self.print_selection = PrintSelection()

        # --- filters ---
        top_frame = ctk.CTkFrame(self)
        top_frame.pack(fill="x", padx=10, pady=10)
        ctk.CTkLabel(top_frame, text="Godown:").pack(side="left", padx=(10, 5))
        self.location_var = ctk.StringVar(value="")
        location_entry = ctk.CTkEntry(top_frame, textvariable=self.location_var, width=120)
        location_entry.pack(side="left")
        location_entry.bind("<Return>", lambda e: self.refresh())
        self.pending_var = ctk.BooleanVar(value=True)
        ctk.CTkCheckBox(
            top_frame, text="Pending only", variable=self.pending_var, command=self.refresh
        ).pack(side="left", padx=10)
        ctk.CTkButton(top_frame, text="Refresh", command=self.refresh).pack(side="left", padx=5)

        # --- table ---
        self.tree = ttk.Treeview(self, columns=COLUMNS, show="headings", selectmode="browse")
        for col in COLUMNS:
            self.tree.heading(col, text=col)
            self.tree.column(col, width=90, anchor="center")
        self.tree.pack(fill="both", expand=True, padx=10, pady=5)
        self.tree.bind("<Double-1>", lambda e: self.open_selected())
        self.tree.bind("<space>", lambda e: self.toggle_print_selected())

        # --- actions ---
        bottom_frame = ctk.CTkFrame(self)
        bottom_frame.pack(fill="x", padx=10, pady=10)
        ctk.CTkButton(bottom_frame, text="Select Quantities", command=self.open_selected).pack(side="left", padx=5)
        ctk.CTkButton(bottom_frame, text="Mark for Print", command=self.toggle_print_selected).pack(side="left", padx=5)
        ctk.CTkButton(bottom_frame, text="Select All Matching", command=self.select_all_for_print).pack(
            side="left", padx=5
        )
        ctk.CTkButton(bottom_frame, text="Clear Print Selection", command=self.clear_print_selection).pack(
            side="left", padx=5
        )
        self.print_count_var = ctk.StringVar(value="")
        ctk.CTkLabel(bottom_frame, textvariable=self.print_count_var).pack(side="left", padx=10)
        ctk.CTkButton(bottom_frame, text="Print Load List", command=self.print_load_list).pack(side="right", padx=5)

        self.refresh()

    # ------------------------------------------------------------------
    def _filters(self) -> Dict[str, object]:
        filters: Dict[str, object] = {"pending_only": bool(self.pending_var.get())}
        location = (self.location_var.get() or "").strip()
        if location:
            filters["storage_location"] = location
        return filters

    def refresh(self) -> None:
        filters = self._filters()
        rows = self.dm.list_loading_sheet(pending_only=filters["pending_only"])
        location = filters.get("storage_location")
        if location:
            rows = [r for r in rows if str(r["storage_location"] or "").upper() == str(location).upper()]
        self.rows = rows

        for item in self.tree.get_children():
            self.tree.delete(item)
        for row in rows:
            self.tree.insert(
                "",
                "end",
                iid=row["gc_no"],
                values=(
                    "✓" if self.print_selection.is_selected(row["gc_no"]) else "",
                    row["gc_no"],
                    row["storage_location"] or "N/A",
                    row["consignor_name"],
                    row["consignee_name"],
                    row["total"],
                    row["loaded_count"],
                    row["pending"],
                    f"{row['loading_status']} (over declared)" if row.get("anomaly") else row["loading_status"],
                ),
            )
        self._update_print_count()

    def _update_print_count(self) -> None:
        count = self.print_selection.count(len(self.rows))
        self.print_count_var.set(f"{count} GCs marked for print")

    def _selected_gc(self) -> Optional[str]:
        selection = self.tree.selection()
        if not selection:
            messagebox.showinfo("Select GC", "Please select a GC first")
            return None
        return str(selection[0])

    # --- loading ------------------------------------------------------
    def open_selected(self) -> None:
        gc_no = self._selected_gc()
        if gc_no is not None:
            self.open_dialog(gc_no)

    def open_dialog(self, gc_no: str) -> Optional[QtySelectionDialog]:
        try:
            return QtySelectionDialog(self, self.dm, gc_no, self.user_id, on_saved=self._on_saved)
        except KeyError:
            messagebox.showerror("Not found", f"GC {gc_no} no longer exists")
            self.refresh()
        except ValueError as exc:
            messagebox.showerror("Invalid GC", str(exc))
        return None

    def _on_saved(self, committed: CommittedProgress) -> None:
        logger.info("GC %s now %s (%d pending)", committed.shipment_id, committed.status, committed.pending)
        self.refresh()

    # --- printing -----------------------------------------------------
    def toggle_print_selected(self) -> None:
        gc_no = self._selected_gc()
        if gc_no is None:
            return
        self.print_selection.toggle(gc_no)
        self.refresh()

    def select_all_for_print(self) -> None:
        self.print_selection.select_all(self._filters())
        self.refresh()

    def clear_print_selection(self) -> None:
        self.print_selection.clear()
        self.refresh()

    def print_load_list(self, preview: bool = True):
        records = self.print_selection.resolve(self.dm)
        if not records:
            messagebox.showinfo("Nothing to print", "Mark at least one GC for the load list")
            return None
        html_content = load_list_printer.create_load_list_html(aggregate_load_list(records))
        try:
            pdf_path = load_list_printer.generate_load_list_pdf(html_content)
        except OSError as exc:
            logger.exception("Load list PDF failed")
            messagebox.showerror("Print Error", f"Could not create the PDF: {exc}")
            return None
        if preview:
            load_list_printer.preview_load_list(html_content)
        return pdf_path


def start_loading_sheet(user_id: Optional[int] = None, db_path: str = DB_PATH) -> None:
    """Launch the loading sheet window."""
    app = LoadingSheetWindow(user_id, db_path)
    app.mainloop()
