"""Path helpers for addressing values inside CMS documents.

Paths use the CMS patch syntax: dots for object keys, ``[n]`` for array
indexes and ``[_key=="abc"]`` for keyed array items, e.g.
``content.blocks[0].text`` or ``tags[_key=="abc"].value``.
"""

import re
import secrets
import string
from datetime import date
from typing import Any

_SEGMENT_SPLIT = re.compile(r"\.|\[|\]\.?")
_KEY_SELECTOR = re.compile(r'_key\s*==\s*["\']([^"\']+)["\']')
_INDEX = re.compile(r"^-?\d+$")
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")

_KEY_ALPHABET = string.ascii_lowercase + string.digits


def split_path(path: str) -> list[str]:
    """Split a path into its segments, dropping empty pieces."""
    return [segment for segment in _SEGMENT_SPLIT.split(path) if segment]


def get_value_at_path(document: Any, path: str) -> Any:
    """Navigate ``document`` along ``path``. Missing segments yield None."""
    current = document
    for segment in split_path(path):
        if current is None:
            return None
        key_match = _KEY_SELECTOR.search(segment)
        if key_match:
            if not isinstance(current, list):
                return None
            current = next(
                (
                    item
                    for item in current
                    if isinstance(item, dict) and item.get("_key") == key_match.group(1)
                ),
                None,
            )
        elif _INDEX.match(segment):
            if not isinstance(current, list):
                return None
            index = int(segment)
            current = current[index] if -len(current) <= index < len(current) else None
        elif isinstance(current, dict):
            current = current.get(segment)
        else:
            return None
    return current


def item_selector(path: str, at: int | str) -> str:
    """Build the selector for one array item, by index or by ``_key``."""
    if isinstance(at, int) or (isinstance(at, str) and _INDEX.match(at)):
        return f"{path}[{int(at)}]"
    return f'{path}[_key=="{at}"]'


def parent_paths(path: str) -> list[str]:
    """Plain object prefixes of a dotted path (``a.b.c`` -> ``a``, ``a.b``).

    Stops at the first array segment, since array items cannot be
    created implicitly.
    """
    prefixes: list[str] = []
    parts = path.split(".")
    for i in range(1, len(parts)):
        prefix = ".".join(parts[:i])
        if "[" in prefix:
            break
        prefixes.append(prefix)
    return prefixes


def is_safe_identifier(name: str) -> bool:
    """True for field names that can be interpolated into a GROQ filter."""
    return bool(_IDENTIFIER.match(name))


def slugify(text: str) -> str:
    """Lowercase, whitespace to dashes, drop everything but word chars and dashes."""
    slug = re.sub(r"\s+", "-", text.lower())
    return re.sub(r"[^\w\-]+", "", slug)


def generate_key(length: int = 8) -> str:
    """Random key for array items (base36, like the studio generates)."""
    return "".join(secrets.choice(_KEY_ALPHABET) for _ in range(length))


def ensure_keys(items: list[Any]) -> list[Any]:
    """Give object items a ``_key`` when they lack one; primitives pass through."""
    return [
        {**item, "_key": item.get("_key") or generate_key()} if isinstance(item, dict) else item
        for item in items
    ]


def today_iso() -> str:
    return date.today().isoformat()


def serialize_document(document: Any) -> Any:
    """Strip values that do not survive JSON (e.g. non-str keys) for tool results."""
    if isinstance(document, dict):
        return {str(key): serialize_document(value) for key, value in document.items()}
    if isinstance(document, (list, tuple)):
        return [serialize_document(value) for value in document]
    if isinstance(document, (str, int, float, bool)) or document is None:
        return document
    return str(document)
