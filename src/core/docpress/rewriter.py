"""Placeholder rewriting for converted HTML.

Converted documents reference their images as ``temp://<file name>``. Once the
images are uploaded each placeholder is swapped for the public media URL with a
plain substring replacement, so file names containing regex metacharacters are
matched literally. Placeholders without a mapping stay in place.
"""

from __future__ import annotations

from collections.abc import Iterable

from .models import MediaReference

PLACEHOLDER_SCHEME = "temp://"


def placeholder_for(file_name: str) -> str:
    return f"{PLACEHOLDER_SCHEME}{file_name}"


def replace_image_references(html: str, references: Iterable[MediaReference]) -> str:
    for reference in references:
        if not reference.placeholder_reference or not reference.remote_url:
            continue
        html = html.replace(reference.placeholder_reference, reference.remote_url)
    return html


def unresolved_placeholders(html: str) -> int:
    return html.count(PLACEHOLDER_SCHEME)


__all__ = [
    "PLACEHOLDER_SCHEME",
    "placeholder_for",
    "replace_image_references",
    "unresolved_placeholders",
]
