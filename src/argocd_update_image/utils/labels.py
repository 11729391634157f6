# ABOUTME: Conversion between label strings and label mappings
# ABOUTME: Parses "a=1, b=2" action inputs and renders Kubernetes label selectors

"""Label string helpers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from argocd_update_image.exceptions import LabelParseError

if TYPE_CHECKING:
    from collections.abc import Mapping


def parse_labels(text: str) -> dict[str, str]:
    """
    Convert a comma separated "key=value" string into a mapping.

    Blank entries are skipped, so "", "   " and a trailing comma are fine.
    Keys and values are trimmed. The first "=" in an entry separates the key
    from the value; there is no escaping.

    Example:
        >>> parse_labels("a=1,b=2 , c=abc")
        {'a': '1', 'b': '2', 'c': 'abc'}

    Raises:
        LabelParseError: An entry has an empty key (e.g. "=a") or an empty or
            missing value (e.g. "a" or "a=").
    """
    labels: dict[str, str] = {}
    for entry in text.split(","):
        if not entry.strip():
            continue
        key, _, value = entry.partition("=")
        key = key.strip()
        value = value.strip()
        if not key:
            raise LabelParseError(f"invalid label key in {entry.strip()!r}")
        if not value:
            raise LabelParseError(f"invalid label value in {entry.strip()!r}")
        labels[key] = value
    return labels


def format_selector(labels: Mapping[str, str]) -> str:
    """Render a label mapping as a Kubernetes label selector ("a=1,b=2")."""
    return ",".join(f"{key}={value}" for key, value in labels.items())
