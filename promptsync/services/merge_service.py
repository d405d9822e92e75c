"""Merge policies for combining a downloaded document with local collections."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from promptsync.schemas.sync import MergeMode

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable, Sequence

    from promptsync.schemas.sync import SyncDocument

T = TypeVar("T")

Record = dict[str, Any]


def record_id(record: Record) -> Hashable:
    """Identity of an opaque prompt/category record.

    Object and array ids are compared by their canonical JSON text, kept
    apart from plain string ids.
    """
    value = record.get("id")
    if isinstance(value, (dict, list)):
        return ("json", json.dumps(value, sort_keys=True))
    return value


def merge_by_key(
    local: Sequence[T],
    remote: Sequence[T],
    key_of: Callable[[T], Hashable],
) -> list[T]:
    """Append the remote items whose key is not already present.

    Local items are kept verbatim and in order; remote items follow in their
    original order. A remote item is dropped when its key matches a local item
    or an earlier remote item, so the appended part never repeats a key.
    """
    seen = {key_of(item) for item in local}
    merged = list(local)
    for item in remote:
        key = key_of(item)
        if key in seen:
            continue
        seen.add(key)
        merged.append(item)
    return merged


@dataclass
class MergedCollections:
    """Collections to write back to local state after a pull."""

    prompts: list[Record] = field(default_factory=list)
    categories: list[Record] = field(default_factory=list)
    added_prompts: int = 0
    added_categories: int = 0


def merge_document(
    mode: MergeMode,
    document: SyncDocument,
    local_prompts: Sequence[Record],
    local_categories: Sequence[Record],
) -> MergedCollections:
    """Apply ``mode`` to a downloaded document and the current local collections."""
    if MergeMode(mode) is MergeMode.REPLACE:
        return MergedCollections(
            prompts=list(document.prompts),
            categories=list(document.categories),
            added_prompts=len(document.prompts),
            added_categories=len(document.categories),
        )

    prompts = merge_by_key(local_prompts, document.prompts, record_id)
    categories = merge_by_key(local_categories, document.categories, record_id)
    return MergedCollections(
        prompts=prompts,
        categories=categories,
        added_prompts=len(prompts) - len(local_prompts),
        added_categories=len(categories) - len(local_categories),
    )
