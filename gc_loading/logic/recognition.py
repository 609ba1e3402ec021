"""Read package numbers off a photo of the loaded cases."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List

import pytesseract
from PIL import Image, ImageOps

from gc_loading.config import TESSERACT_CONFIG

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"\d+")


def extract_numbers(text: str) -> List[int]:
    """Return every integer found in ``text`` in order of appearance."""
    return [int(token) for token in _NUMBER_RE.findall(text)]


def recognize_package_numbers(image_path: str | Path) -> List[int]:
    """OCR ``image_path`` and return the package numbers it shows.

    Errors from Pillow or tesseract propagate; the scan adapter turns them
    into :class:`~gc_loading.errors.RecognitionFailure`.
    """
    with Image.open(image_path) as img:
        grey = ImageOps.grayscale(img)
        text = pytesseract.image_to_string(grey, config=TESSERACT_CONFIG)
    numbers = extract_numbers(text)
    logger.info("OCR read %d numbers from %s", len(numbers), image_path)
    return numbers
