"""
Path helpers for the slash-delimited tree addressed by the database.

Paths are absolute strings such as ``/blogs/b1/name``. Empty segments
are ignored, so ``""``, ``"/"`` and ``"//"`` all address the root.
"""

from __future__ import annotations

from typing import Any, List


def split_path(path: str) -> List[str]:
    """Split a path into its non-empty segments."""
    return [segment for segment in path.split("/") if segment]


def join_path(*parts: str) -> str:
    """Join path parts into a normalized absolute path."""
    segments: List[str] = []
    for part in parts:
        segments.extend(split_path(part))
    return "/" + "/".join(segments)


def is_ancestor(ancestor: str, path: str) -> bool:
    """Whether ``ancestor`` is a strict ancestor of ``path``."""
    outer = split_path(ancestor)
    inner = split_path(path)
    return len(outer) < len(inner) and inner[: len(outer)] == outer


def relative_segments(base: str, path: str) -> List[str] | None:
    """Segments of ``path`` below ``base``, or None if it is not inside it.

    ``path == base`` gives an empty list.
    """
    outer = split_path(base)
    inner = split_path(path)
    if inner[: len(outer)] != outer:
        return None
    return inner[len(outer):]


def get_at(tree: Any, segments: List[str]) -> Any:
    """Return the value at ``segments`` inside ``tree``, or None."""
    node = tree
    for segment in segments:
        if not isinstance(node, dict) or segment not in node:
            return None
        node = node[segment]
    return node


def put_at(tree: dict, segments: List[str], value: Any) -> None:
    """Write ``value`` at ``segments``; None removes the node.

    Parent nodes that become empty are pruned, since the tree never
    stores empty objects.
    """
    if not segments:
        tree.clear()
        if isinstance(value, dict):
            tree.update(value)
        return

    head, rest = segments[0], segments[1:]
    if not rest:
        if value is None or value == {}:
            tree.pop(head, None)
        else:
            tree[head] = value
        return

    child = tree.get(head)
    if not isinstance(child, dict):
        if value is None:
            return
        child = {}
        tree[head] = child
    put_at(child, rest, value)
    if not child:
        tree.pop(head, None)
