"""Dotted-path access to node configuration documents.

A ConfigDocument is a nested dict with case-sensitive string keys.
Paths address into it with dot-separated segments, e.g. "Addresses.Swarm";
a path may resolve to a scalar, a list or a subtree.

The module-level functions are pure: they never mutate their inputs.
ConfigAccessor adds the backend-dependent value encoding on top:

- "string" encoding (native process backend): values leave the accessor as
  strings (strings verbatim, anything else as indented JSON) and incoming
  strings are parsed as JSON when they are valid JSON. This mirrors what
  the node's own command line returns, so get-after-set is stable.
- "structured" encoding (library and handle backends): values pass through
  untouched.
"""

from __future__ import annotations

__all__ = [
    "ConfigAccessor",
    "ValueEncoding",
    "deep_merge",
    "get_value",
    "set_value",
    "split_path",
]

import copy
import json
from typing import Any, Literal

from ipfsd_ctl.exceptions import ConfigPathNotFound
from ipfsd_ctl.models import ConfigDocument

ValueEncoding = Literal["string", "structured"]


def split_path(path: str) -> list[str]:
    """Split a dotted path into segments.

    Raises:
        ConfigPathNotFound: If the path is empty or has empty segments.
    """
    segments = path.split(".") if path else []
    if not segments or any(not s for s in segments):
        raise ConfigPathNotFound(path)
    return segments


def get_value(document: ConfigDocument, path: str) -> Any:
    """Resolve a dotted path in a document.

    Args:
        document: The configuration document.
        path: Dotted path such as "Addresses.API".

    Returns:
        A deep copy of the value at the path.

    Raises:
        ConfigPathNotFound: If any segment does not resolve.
    """
    node: Any = document
    for segment in split_path(path):
        if not isinstance(node, dict) or segment not in node:
            raise ConfigPathNotFound(path)
        node = node[segment]
    return copy.deepcopy(node)


def set_value(document: ConfigDocument, path: str, value: Any) -> ConfigDocument:
    """Return a copy of the document with the value at path replaced.

    Missing intermediate subtrees are created. An existing value of a
    different shape (scalar, list, subtree) is overwritten, never merged;
    the same applies to a non-dict intermediate.

    Args:
        document: The configuration document (left untouched).
        path: Dotted path.
        value: New value.

    Returns:
        The updated copy.
    """
    segments = split_path(path)
    updated = copy.deepcopy(document)

    node = updated
    for segment in segments[:-1]:
        child = node.get(segment)
        if not isinstance(child, dict):
            child = {}
            node[segment] = child
        node = child
    node[segments[-1]] = copy.deepcopy(value)
    return updated


def deep_merge(base: ConfigDocument, overlay: ConfigDocument) -> ConfigDocument:
    """Merge overlay into a copy of base.

    Subtrees present in both are merged recursively; any other overlay value
    (scalar or list) replaces the base value.
    """
    merged = copy.deepcopy(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class ConfigAccessor:
    """Stateless dotted-path accessor with a backend-specific value encoding.

    Args:
        encoding: "string" for backends whose control surface speaks
            string-encoded values, "structured" otherwise.
    """

    def __init__(self, encoding: ValueEncoding = "structured") -> None:
        self.encoding = encoding

    def get(self, document: ConfigDocument, path: str | None = None) -> Any:
        """Read the whole document (path None) or one value, encoded."""
        value = copy.deepcopy(document) if path is None else get_value(document, path)
        return self.encode(value)

    def set(self, document: ConfigDocument, path: str, value: Any) -> ConfigDocument:
        """Return the document with value (decoded) written at path."""
        return set_value(document, path, self.decode(value))

    def encode(self, value: Any) -> Any:
        """Convert a structured value into the backend's native shape."""
        if self.encoding == "structured" or isinstance(value, str):
            return value
        return json.dumps(value, indent=2)

    def decode(self, value: Any) -> Any:
        """Convert a caller-supplied value into a structured value.

        With string encoding, strings holding valid JSON ('null', '["a"]',
        'true') are parsed; other strings are kept as plain strings.
        """
        if self.encoding == "structured" or not isinstance(value, str):
            return value
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value

    def __repr__(self) -> str:
        return f"ConfigAccessor(encoding={self.encoding!r})"
