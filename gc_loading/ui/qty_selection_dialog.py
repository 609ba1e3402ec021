"""Select quantities dialog: mark which package numbers of a GC are loaded."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

import customtkinter as ctk
from tkinter import filedialog, messagebox

from gc_loading.data_manager import DataManager
from gc_loading.errors import (
    PersistenceError,
    RangeOutOfBounds,
    RecognitionFailure,
    StaleSelection,
)
from gc_loading.logic.loading_context import LoadingContext, MultiGroupCoordinator
from gc_loading.logic.package_range import format_runs, range_of
from gc_loading.logic.persistence import CommittedProgress, ProgressPersistenceGateway
from gc_loading.logic.scan_merge import Recognizer, ScanMergeAdapter
from gc_loading.logic.selection import PointerEvent, PointerKind, SelectionStateMachine

logger = logging.getLogger(__name__)

SELECTED_COLOR = "#2e7d32"
UNSELECTED_COLOR = "#9e9e9e"
GRID_COLUMNS = 10
CONTROL_MASK = 0x0004


class QtySelectionDialog(ctk.CTkToplevel):
    def __init__(
        self,
        parent,
        dm: DataManager,
        gc_no: str,
        user_id: Optional[int] = None,
        on_saved: Optional[Callable[[CommittedProgress], None]] = None,
        recognizer: Optional[Recognizer] = None,
    ):
        super().__init__(parent)
        self.dm = dm
        self.user_id = user_id
        self.on_saved = on_saved

        record = dm.fetch_shipment_by_id(gc_no)
        if record is None:
            raise KeyError(gc_no)
        self.context = LoadingContext.hydrate(record)
        self.coordinator = MultiGroupCoordinator(self.context)
        self.machine = SelectionStateMachine(self.context)
        self.scanner = ScanMergeAdapter(self.context, recognizer)
        self.gateway = ProgressPersistenceGateway(dm)
        self.committed: Optional[CommittedProgress] = None

        self.title(f"Select Quantities - GC {gc_no}")
        self.geometry("720x560")
        self.protocol("WM_DELETE_WINDOW", self.cancel)
        self.grid_columnconfigure(0, weight=1)
        self.grid_rowconfigure(2, weight=1)

        # --- group tabs ---
        self._tab_labels: Dict[str, str] = {}
        self.tab_bar = ctk.CTkSegmentedButton(self, values=[], command=self._on_tab_selected)
        if self.coordinator.has_multiple_groups:
            self.tab_bar.grid(row=0, column=0, padx=10, pady=(10, 0), sticky="ew")

        # --- range input ---
        range_frame = ctk.CTkFrame(self)
        range_frame.grid(row=1, column=0, padx=10, pady=10, sticky="ew")
        ctk.CTkLabel(range_frame, text="From:").pack(side="left", padx=(10, 5))
        self.from_var = ctk.StringVar(value="")
        ctk.CTkEntry(range_frame, textvariable=self.from_var, width=80).pack(side="left")
        ctk.CTkLabel(range_frame, text="To:").pack(side="left", padx=(10, 5))
        self.to_var = ctk.StringVar(value="")
        to_entry = ctk.CTkEntry(range_frame, textvariable=self.to_var, width=80)
        to_entry.pack(side="left")
        to_entry.bind("<Return>", self.apply_range)
        ctk.CTkButton(range_frame, text="Apply", width=70, command=self.apply_range).pack(side="left", padx=5)
        self.select_all_btn = ctk.CTkButton(range_frame, text="Select All", width=110, command=self.toggle_all)
        self.select_all_btn.pack(side="left", padx=5)
        ctk.CTkButton(range_frame, text="Scan Photo", width=100, command=self.scan_image).pack(side="left", padx=5)
        self.error_var = ctk.StringVar(value="")
        ctk.CTkLabel(range_frame, textvariable=self.error_var, text_color="red").pack(side="left", padx=10)

        # --- package grid ---
        self.grid_frame = ctk.CTkScrollableFrame(self, label_text="Packages")
        self.grid_frame.grid(row=2, column=0, padx=10, pady=5, sticky="nsew")
        self._cells: Dict[int, ctk.CTkButton] = {}
        self._cell_state: Dict[int, bool] = {}
        self._widget_numbers: Dict[object, int] = {}

        # --- footer ---
        bottom_frame = ctk.CTkFrame(self)
        bottom_frame.grid(row=3, column=0, padx=10, pady=10, sticky="ew")
        self.summary_var = ctk.StringVar(value="")
        ctk.CTkLabel(bottom_frame, textvariable=self.summary_var).pack(side="left", padx=10)
        ctk.CTkButton(bottom_frame, text="Cancel", command=self.cancel).pack(side="right", padx=5)
        self.save_btn = ctk.CTkButton(bottom_frame, text="Save", command=self.save)
        self.save_btn.pack(side="right", padx=5)

        self._build_grid()
        self._refresh()

    # ------------------------------------------------------------------
    def _build_grid(self) -> None:
        for widget in self.grid_frame.winfo_children():
            widget.destroy()
        self._cells.clear()
        self._cell_state.clear()
        self._widget_numbers.clear()

        group = self.coordinator.active_group
        for index, number in enumerate(range_of(group)):
            cell = ctk.CTkButton(self.grid_frame, text=str(number), width=52, fg_color=UNSELECTED_COLOR)
            cell.grid(row=index // GRID_COLUMNS, column=index % GRID_COLUMNS, padx=2, pady=2)
            cell.bind("<ButtonPress-1>", lambda e, n=number: self.on_cell_press(n, bool(e.state & CONTROL_MASK)))
            cell.bind("<B1-Motion>", self._on_cell_motion)
            cell.bind("<ButtonRelease-1>", lambda e: self.on_release())
            self._cells[number] = cell
            self._widget_numbers[cell] = number

    def _refresh(self) -> None:
        selected = self.context.selection_of(self.coordinator.active_group.group_id)
        for number, cell in self._cells.items():
            state = number in selected
            if self._cell_state.get(number) != state:
                cell.configure(fg_color=SELECTED_COLOR if state else UNSELECTED_COLOR)
                self._cell_state[number] = state

        self._tab_labels.clear()
        for summary in self.coordinator.group_summaries():
            label = summary.label + (" ✓" if summary.complete else "")
            self._tab_labels[label] = summary.group.group_id
        active_label = next(
            (lbl for lbl, gid in self._tab_labels.items() if gid == self.context.active_group_id), ""
        )
        self.tab_bar.configure(values=list(self._tab_labels))
        self.tab_bar.set(active_label)

        all_selected = self.machine.is_all_selected()
        self.select_all_btn.configure(text="Deselect All" if all_selected else "Select All")
        self.summary_var.set(
            f"Loaded {self.coordinator.loaded_count} of {self.coordinator.total_quantity}"
            f" | This group: {format_runs(selected) or '-'}"
        )

    # --- pointer port ---------------------------------------------------
    def on_cell_press(self, number: int, additive: bool = False) -> None:
        self.machine.handle_pointer(PointerEvent(PointerKind.PRESS, number, additive))
        self._refresh()

    def on_cell_enter(self, number: int) -> None:
        if not self.machine.dragging:
            return
        self.machine.handle_pointer(PointerEvent(PointerKind.ENTER, number))
        self._refresh()

    def on_release(self) -> None:
        self.machine.handle_pointer(PointerEvent(PointerKind.RELEASE))

    def _on_cell_motion(self, event) -> None:
        # Tk keeps delivering motion to the pressed cell, so look up what is under the pointer.
        widget = self.winfo_containing(event.x_root, event.y_root)
        while widget is not None and widget not in self._widget_numbers:
            widget = getattr(widget, "master", None)
        if widget is not None:
            self.on_cell_enter(self._widget_numbers[widget])

    # --- actions ----------------------------------------------------------
    def _on_tab_selected(self, label: str) -> None:
        group_id = self._tab_labels.get(label)
        if group_id is None or group_id == self.context.active_group_id:
            return
        self.select_group(group_id)

    def select_group(self, group_id: str) -> None:
        self.coordinator.activate(group_id)
        self.error_var.set("")
        self._build_grid()
        self._refresh()

    def apply_range(self, event=None) -> None:
        try:
            self.machine.apply_explicit_range(self.from_var.get(), self.to_var.get())
        except RangeOutOfBounds as exc:
            self.error_var.set(str(exc))
            return
        self.error_var.set("")
        self.from_var.set("")
        self.to_var.set("")
        self._refresh()

    def toggle_all(self) -> None:
        self.machine.toggle_all()
        self._refresh()

    def scan_image(self) -> None:
        path = filedialog.askopenfilename(
            title="Select Photo of Packages",
            filetypes=[("Images", "*.png *.jpg *.jpeg *.bmp *.tif *.tiff")],
        )
        if not path:
            return
        try:
            result = self.scanner.scan(path)
        except RecognitionFailure as exc:
            messagebox.showerror("Scan failed", str(exc))
            return
        self._refresh()
        message = f"{len(result.added)} packages added."
        if result.dropped:
            message += f"\n{len(result.dropped)} numbers outside this group were ignored."
        messagebox.showinfo("Scan complete", message)

    def save(self) -> None:
        try:
            self.committed = self.gateway.save(self.context, self.user_id)
        except StaleSelection as exc:
            messagebox.showerror("Save conflict", str(exc))
            return
        except PersistenceError as exc:
            messagebox.showerror("Save failed", str(exc))
            return
        if self.committed.anomaly:
            if self.context.out_of_range:
                message = f"Packages outside the declared ranges were dropped: {self.context.out_of_range}"
            else:
                message = f"{self.committed.loaded} packages loaded but only {self.committed.total} declared."
            messagebox.showwarning("Check GC", message)
        if self.on_saved is not None:
            self.on_saved(self.committed)
        self.destroy()

    def cancel(self) -> None:
        self.context.close()
        self.destroy()
