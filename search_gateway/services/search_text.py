"""Build the two merged search-text fields of a document.

searchDisplay carries the short, heavily boosted display text (titles,
names); searchContent carries the long-form text. Both are plain text:
HTML tags are stripped, entities unescaped and whitespace collapsed.
"""

import html as html_mod
import re
from typing import Any, Iterable

from .metadata_registry import EntitySchema

# Content size limit for indexing (~50K words)
MAX_CONTENT_LENGTH = 300_000

TAG_RE = re.compile(r"<[^>]+>")


def to_plain_text(value: Any) -> str:
    """Flatten a field value (string, number or list of them) into plain text."""
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(filter(None, (to_plain_text(v) for v in value)))
    if isinstance(value, (int, float)):
        return str(value)
    if not isinstance(value, str):
        return ""
    text = html_mod.unescape(TAG_RE.sub(" ", value))
    return " ".join(text.split())


def merge_fields(data: dict[str, Any], field_names: Iterable[str]) -> str:
    parts = [to_plain_text(data.get(name)) for name in field_names]
    return " ".join(p for p in parts if p)[:MAX_CONTENT_LENGTH]


def build_search_display(schema: EntitySchema, data: dict[str, Any]) -> str:
    return merge_fields(data, schema.display_fields)


def build_search_content(schema: EntitySchema, data: dict[str, Any]) -> str:
    return merge_fields(data, schema.content_fields)
