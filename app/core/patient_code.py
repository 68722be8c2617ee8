"""Short human-friendly patient codes such as ``JohnS`` or ``JohnS2``."""

import re
from collections.abc import Iterable

_NON_LETTERS = re.compile(r"[^A-Za-z]")


def base_from_name(full_name: str | None) -> str:
    """Capitalised first name plus the initial of the last name."""
    parts = (full_name or "").split()
    if not parts:
        return "Patient"
    first = parts[0]
    last = parts[-1] if len(parts) > 1 else ""
    base = first[:1].upper() + first[1:].lower() + (last[:1].upper() if last else "")
    return _NON_LETTERS.sub("", base) or "Patient"


def next_free_code(base: str, taken: Iterable[str | None]) -> str:
    """
    Pick ``base`` or ``base`` plus the smallest suffix from 2 that is unused.

    Comparison is case-insensitive.
    """
    used = {(code or "").lower() for code in taken}
    if base.lower() not in used:
        return base
    n = 2
    while f"{base}{n}".lower() in used:
        n += 1
    return f"{base}{n}"
