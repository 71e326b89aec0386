# comicshelf/utils/naming.py
import re
import unicodedata
from typing import Union

_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")
_DIGITS_RE = re.compile(r"(\d+)")


def slugify(text: str) -> str:
    """
    URL-safe identifier for a title:
    - NFD-decompose and drop combining marks (U+0300..U+036F)
    - lowercase, trim
    - runs of anything outside [a-z0-9] -> '-'
    - no leading/trailing '-'

    Letters with no decomposition (e.g. 'Đ') are dropped rather than transliterated.
    """
    value = unicodedata.normalize("NFD", str(text))
    value = "".join(ch for ch in value if not ("\u0300" <= ch <= "\u036f"))
    value = value.lower().strip()
    value = _NON_SLUG_RE.sub("-", value)
    return value.strip("-")


def natural_key(name: str) -> tuple:
    """Sort key that orders 'img2' before 'img10'."""
    parts = _DIGITS_RE.split(name or "")
    return tuple(
        (0, int(part), "") if part.isdigit() else (1, 0, part.casefold())
        for part in parts
        if part != ""
    )


def format_chapter_number(number: Union[int, float, str]) -> str:
    """
    Folder name for a chapter number: 5.0 -> '5', 5.5 -> '5.5'.
    Raises ValueError for non-numeric input.
    """
    value = float(number)
    if value != value or value in (float("inf"), float("-inf")):
        raise ValueError(f"Invalid chapter number: {number!r}")
    if value.is_integer():
        return str(int(value))
    return repr(value)
