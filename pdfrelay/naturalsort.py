"""Ordering of file paths by the number that ends their base name."""

from __future__ import annotations

import os
import re
from collections.abc import Iterable

# A numeric block immediately before a file extension.
_EXTENSION_SUFFIX = re.compile(r"^(.*?)(\d+)(\.[^.]+)$")

# Largest value a numeric block may take before it is ignored.
_MAX_NUMBER = 2**63 - 1


def extract_number(path: str) -> tuple[int, str]:
    """Return the number before the extension of the base name and the rest.

    The rest is the base name without that number. When there is no such
    number, the number is -1 and the rest is the whole base name.
    """
    name = os.path.basename(path)
    match = _EXTENSION_SUFFIX.match(name)
    if match:
        prefix, digits, extension = match.groups()
        number = int(digits)
        if number <= _MAX_NUMBER:
            return number, prefix + extension
    return -1, name


def digit_suffix_key(path: str) -> tuple:
    """Sort key: numbered paths first, by number then rest; others by path."""
    number, rest = extract_number(path)
    if number != -1:
        return (0, number, rest)
    return (1, path)


def sort_by_digit_suffix(paths: Iterable[str]) -> list[str]:
    """Return the paths ordered by the number that ends their base name."""
    return sorted(paths, key=digit_suffix_key)