from __future__ import annotations

from collections.abc import Mapping
from typing import Any

ROOT_SEGMENT = "$root"


def get_nested_value(args: Any, path: str, *, root: Any = None) -> Any:
    """Read a dot-separated path out of request arguments.

    ``"input.characterId"`` walks ``args["input"]["characterId"]``; plain
    objects are walked by attribute. A path starting with ``$root`` reads from
    ``root`` instead, the parent object of a field being resolved.

    Missing segments, ``None`` along the way, or a scalar where a container
    is expected all yield ``None``. This function never raises.
    """
    if not path:
        return None

    segments = path.split(".")
    current = args
    if segments[0] == ROOT_SEGMENT:
        current = root
        segments = segments[1:]

    for segment in segments:
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(segment)
        elif isinstance(current, (str, bytes, int, float, bool)):
            return None
        else:
            current = getattr(current, segment, None)
    return current


def uses_root(path: str) -> bool:
    return path.split(".", 1)[0] == ROOT_SEGMENT


def is_present(value: Any) -> bool:
    return value is not None and value != ""
