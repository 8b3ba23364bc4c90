"""
Text combiner.

Builds the canonical text blob that is embedded for a content item. The same
function produces the text handed to the embedding model and the
combined_text payload stored next to the vector.
"""

import json
from typing import Any, Dict, List, Optional

from contentvault.core.config import settings

TRUNCATION_MARKER = "..."


def _format_tags(tags: Any) -> Optional[str]:
    if not tags:
        return None
    if isinstance(tags, (list, tuple)):
        joined = ", ".join(str(tag) for tag in tags if tag is not None and str(tag).strip())
        return joined or None
    return str(tags)


def combine_content_for_embedding(
    title: Optional[str] = None,
    summary: Optional[str] = None,
    description: Optional[str] = None,
    labels: Optional[List[str]] = None,
    metadata: Optional[Dict[str, Any]] = None,
    content: Optional[str] = None,
    max_content_chars: Optional[int] = None,
) -> str:
    """
    Concatenate the present fields in a fixed order, one part per paragraph:

        Title: ...
        Summary: ...
        Description: ...
        Tags: a, b
        MetaTags: x, y            <- metadata["tags"]
        Metadata: {"k": "v"}      <- rest of metadata, sorted keys
        Content: ...              <- truncated to max_content_chars + "..."

    Empty or missing fields are left out entirely.
    """
    limit = settings.EMBEDDING_CONTENT_MAX_CHARS if max_content_chars is None else max_content_chars
    parts: List[str] = []

    if title:
        parts.append(f"Title: {title}")
    if summary:
        parts.append(f"Summary: {summary}")
    if description:
        parts.append(f"Description: {description}")

    tags = _format_tags(labels)
    if tags:
        parts.append(f"Tags: {tags}")

    if metadata:
        meta_tags = _format_tags(metadata.get("tags"))
        if meta_tags:
            parts.append(f"MetaTags: {meta_tags}")

        rest = {key: value for key, value in metadata.items() if key != "tags" and value not in (None, "", [], {})}
        if rest:
            parts.append(f"Metadata: {json.dumps(rest, sort_keys=True, ensure_ascii=False, default=str)}")

    if content:
        if len(content) > limit:
            content = content[:limit] + TRUNCATION_MARKER
        parts.append(f"Content: {content}")

    return "\n\n".join(parts)
