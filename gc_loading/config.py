"""Configuration options for the application."""

import os

DB_PATH = os.getenv("GC_LOADING_DB", "gc_loading.db")

# Allow users to control the CustomTkinter theme ("light" or "dark").
APPEARANCE_MODE = os.getenv("APPEARANCE_MODE", "light")

# Log file written by ``logging_utils.setup_logging``; empty means next to the package.
LOG_FILE = os.getenv("GC_LOADING_LOG", "")

# Folder used for load list HTML previews and PDFs.
TEMP_DIR = os.getenv("GC_LOADING_TEMP", "temp")

# Extra flags handed to tesseract when reading package numbers off a photo.
# --psm 11 = sparse text, the numbers are chalked/printed all over the cases.
TESSERACT_CONFIG = os.getenv("TESSERACT_CONFIG", "--psm 11 -c tessedit_char_whitelist=0123456789")

# Saving normally refuses to overwrite progress that another session committed
# after this one was opened. Set to 1 to fall back to last-write-wins.
LAST_WRITE_WINS = os.getenv("GC_LOADING_LAST_WRITE_WINS", "0") == "1"

# Defaults for shipments recorded before content groups existed.
DEFAULT_PACKING = "CASE"
DEFAULT_CONTENTS = "FW"
