"""Tests for replace/append merge policies."""

from __future__ import annotations

from promptsync.schemas.sync import MergeMode, SyncDocument
from promptsync.services.merge_service import merge_by_key, merge_document, record_id


def _doc(prompts: list[dict], categories: list[dict] | None = None) -> SyncDocument:
    if categories is None:
        return SyncDocument(prompts=prompts)
    return SyncDocument(prompts=prompts, categories=categories)


class TestMergeByKey:
    def test_local_first_then_new_remote_in_document_order(self) -> None:
        local = [{"id": "a"}, {"id": "b"}]
        remote = [{"id": "b"}, {"id": "c"}]
        assert merge_by_key(local, remote, record_id) == [{"id": "a"}, {"id": "b"}, {"id": "c"}]

    def test_local_entry_wins_on_conflict(self) -> None:
        local = [{"id": "a", "title": "local"}]
        remote = [{"id": "a", "title": "remote"}, {"id": "z", "title": "new"}]
        merged = merge_by_key(local, remote, record_id)
        assert merged == [{"id": "a", "title": "local"}, {"id": "z", "title": "new"}]

    def test_duplicate_ids_within_remote_are_dropped(self) -> None:
        merged = merge_by_key([], [{"id": "x", "n": 1}, {"id": "x", "n": 2}], record_id)
        assert merged == [{"id": "x", "n": 1}]

    def test_empty_local(self) -> None:
        assert merge_by_key([], [{"id": "a"}], record_id) == [{"id": "a"}]

    def test_empty_remote_keeps_local_verbatim(self) -> None:
        local = [{"id": "b"}, {"id": "a"}]
        assert merge_by_key(local, [], record_id) == local

    def test_does_not_mutate_inputs(self) -> None:
        local = [{"id": "a"}]
        remote = [{"id": "b"}]
        merge_by_key(local, remote, record_id)
        assert local == [{"id": "a"}]
        assert remote == [{"id": "b"}]

    def test_object_and_array_ids_are_compared_by_value(self) -> None:
        local = [{"id": {"k": 1, "j": 2}}]
        remote = [
            {"id": {"j": 2, "k": 1}},
            {"id": [1, 2]},
            {"id": [1, 2]},
            {"id": '{"j": 2, "k": 1}'},
        ]
        assert merge_by_key(local, remote, record_id) == [
            {"id": {"k": 1, "j": 2}},
            {"id": [1, 2]},
            {"id": '{"j": 2, "k": 1}'},
        ]

    def test_works_with_any_key_function(self) -> None:
        assert merge_by_key([1, 2], [2, 3, 4], lambda n: n % 3) == [1, 2, 3]


class TestMergeDocument:
    def test_replace_uses_remote_collections_exactly(self) -> None:
        document = _doc([{"id": "r1"}, {"id": "r2"}], [{"id": "rc"}])
        merged = merge_document(
            MergeMode.REPLACE, document, [{"id": "l1"}], [{"id": "lc"}]
        )
        assert merged.prompts == [{"id": "r1"}, {"id": "r2"}]
        assert merged.categories == [{"id": "rc"}]

    def test_replace_defaults_categories_to_empty(self) -> None:
        merged = merge_document(MergeMode.REPLACE, _doc([{"id": "r1"}]), [], [{"id": "lc"}])
        assert merged.categories == []

    def test_append_applies_same_policy_to_both_collections(self) -> None:
        document = _doc([{"id": "b"}, {"id": "c"}], [{"id": "y"}, {"id": "z"}])
        merged = merge_document(
            MergeMode.APPEND,
            document,
            [{"id": "a"}, {"id": "b"}],
            [{"id": "x"}, {"id": "y"}],
        )
        assert merged.prompts == [{"id": "a"}, {"id": "b"}, {"id": "c"}]
        assert merged.categories == [{"id": "x"}, {"id": "y"}, {"id": "z"}]
        assert merged.added_prompts == 1
        assert merged.added_categories == 1

    def test_mode_accepts_plain_string(self) -> None:
        document = _doc([{"id": "b"}])
        merged = merge_document("append", document, [{"id": "a"}], [])  # type: ignore[arg-type]
        assert merged.prompts == [{"id": "a"}, {"id": "b"}]
