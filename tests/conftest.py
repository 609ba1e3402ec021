import sys
import types

import pytest

from database.init_db import initialize_database
from gc_loading.data_manager import DataManager

# Fixture to create a temporary database using the provided schema
@pytest.fixture()
def temp_db(tmp_path):
    db_path = tmp_path / 'test.db'
    initialize_database(str(db_path))
    yield str(db_path)


@pytest.fixture()
def dm(temp_db):
    return DataManager(temp_db)


@pytest.fixture()
def seeded(dm):
    """One consignor/consignee pair and three GCs, two sharing a godown."""
    sender = dm.add_consignor('Acme Mills')
    receiver = dm.add_consignee('Bharat Traders')
    dm.add_shipment(
        '101', sender, receiver, 5, start_number=1, storage_location='G1',
        content_groups=[{'group_id': 'i1', 'packing_label': 'CASE', 'content_label': 'FW', 'start_number': 1, 'quantity': 5}],
    )
    dm.add_shipment(
        '102', sender, receiver, 3, start_number=6, storage_location='G1',
        content_groups=[{'group_id': 'i2', 'packing_label': 'BALE', 'content_label': 'CLOTH', 'start_number': 6, 'quantity': 3}],
    )
    dm.add_shipment('103', sender, receiver, 4, start_number=1, storage_location='G2')
    return {'sender': sender, 'receiver': receiver}

# Fixture to replace customtkinter and tkinter.messagebox with dummies so GUI
# components can be instantiated in a headless test environment
@pytest.fixture(autouse=True)
def dummy_gui(monkeypatch):
    dummy = types.ModuleType('customtkinter')

    class DummyVar:
        def __init__(self, value=None, *a, **kw):
            self._value = value
        def get(self):
            return self._value
        def set(self, value):
            self._value = value

    class DummyWidget:
        def __init__(self, *a, **kw):
            self.options = dict(kw)
        def pack(self, *a, **kw):
            pass
        def grid(self, *a, **kw):
            pass
        def bind(self, *a, **kw):
            pass
        def configure(self, *a, **kw):
            self.options.update(kw)
        def set(self, *a, **kw):
            pass
        def destroy(self, *a, **kw):
            pass
        def cget(self, key):
            return self.options.get(key, "")
        def winfo_children(self):
            return []
        def focus_set(self):
            pass
        def grid_columnconfigure(self, *a, **kw):
            pass
        def grid_rowconfigure(self, *a, **kw):
            pass

    class DummyCTk(DummyWidget):
        def title(self, *a, **kw):
            pass
        def geometry(self, *a, **kw):
            pass
        def destroy(self, *a, **kw):
            self.destroyed = True
        def after(self, *a, **kw):
            return 0
        def after_cancel(self, *a, **kw):
            pass
        def bell(self, *a, **kw):
            pass
        def protocol(self, *a, **kw):
            pass
        def mainloop(self, *a, **kw):
            pass

    class DummyFont:
        def __init__(self, *a, **kw):
            pass

    class DummyTabview(DummyWidget):
        def add(self, name):
            return DummyWidget()

    dummy.CTk = DummyCTk # type: ignore[attr-defined]
    dummy.CTkToplevel = DummyCTk # type: ignore[attr-defined]
    dummy.CTkLabel = DummyWidget # type: ignore[attr-defined]
    dummy.CTkEntry = DummyWidget # type: ignore[attr-defined]
    dummy.CTkOptionMenu = DummyWidget # type: ignore[attr-defined]
    dummy.CTkSegmentedButton = DummyWidget # type: ignore[attr-defined]
    dummy.CTkCheckBox = DummyWidget # type: ignore[attr-defined]
    dummy.CTkFrame = DummyWidget # type: ignore[attr-defined]
    dummy.CTkScrollableFrame = DummyWidget # type: ignore[attr-defined]
    dummy.CTkTabview = DummyTabview # type: ignore[attr-defined]
    dummy.CTkProgressBar = DummyWidget # type: ignore[attr-defined]
    dummy.CTkButton = DummyWidget # type: ignore[attr-defined]
    dummy.CTkFont = DummyFont # type: ignore[attr-defined]
    dummy.IntVar = DummyVar # type: ignore[attr-defined]
    dummy.StringVar = DummyVar # type: ignore[attr-defined]
    dummy.BooleanVar = DummyVar # type: ignore[attr-defined]
    dummy.set_appearance_mode = lambda *a, **kw: None # type: ignore[attr-defined]

    monkeypatch.setitem(sys.modules, 'customtkinter', dummy)

    class DummyTree(DummyWidget):
        def __init__(self, *a, **kw):
            super().__init__(*a, **kw)
            self.items = {}
            self.selected = ()
        def heading(self, *a, **kw):
            pass
        def column(self, *a, **kw):
            pass
        def get_children(self):
            return list(self.items)
        def delete(self, item):
            self.items.pop(item, None)
        def insert(self, parent, index, iid=None, values=()):
            key = iid if iid is not None else str(len(self.items))
            self.items[key] = values
            return key
        def selection(self):
            return self.selected
        def selection_set(self, item):
            self.selected = (item,)

    ttk_dummy = types.ModuleType('tkinter.ttk')
    ttk_dummy.Treeview = DummyTree
    monkeypatch.setitem(sys.modules, 'tkinter.ttk', ttk_dummy)

    mb = types.SimpleNamespace(
        showinfo=lambda *a, **kw: None,
        showwarning=lambda *a, **kw: None,
        showerror=lambda *a, **kw: None,
        askyesno=lambda *a, **kw: True,
    )
    monkeypatch.setitem(sys.modules, 'tkinter.messagebox', mb)

    fd = types.SimpleNamespace(askopenfilename=lambda *a, **kw: "")
    monkeypatch.setitem(sys.modules, 'tkinter.filedialog', fd)
    try:
        import tkinter
        monkeypatch.setattr(tkinter, 'messagebox', mb, raising=False)
        monkeypatch.setattr(tkinter, 'filedialog', fd, raising=False)
        monkeypatch.setattr(tkinter, 'ttk', ttk_dummy, raising=False)
    except ImportError:
        pass
    yield

    # UI modules bind the dummies at import time; drop them so the next test rebinds
    ui_pkg = sys.modules.get("gc_loading.ui")
    for name in ("qty_selection_dialog", "loading_sheet_interface"):
        sys.modules.pop(f"gc_loading.ui.{name}", None)
        if ui_pkg is not None and hasattr(ui_pkg, name):
            delattr(ui_pkg, name)
