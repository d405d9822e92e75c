"""Property-based tests for identifier-based merging."""

from __future__ import annotations

import string

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from promptsync.services.merge_service import merge_by_key, record_id

PROPERTY_SETTINGS = settings(
    max_examples=200,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)

_ID = st.text(alphabet=string.ascii_lowercase + string.digits, min_size=1, max_size=4)
_RECORD = st.builds(lambda rid, n: {"id": rid, "n": n}, _ID, st.integers(0, 9))


def _unique_by_id(records: list[dict]) -> list[dict]:
    seen: set[str] = set()
    out = []
    for record in records:
        if record["id"] not in seen:
            seen.add(record["id"])
            out.append(record)
    return out


_UNIQUE_RECORDS = st.lists(_RECORD, max_size=12).map(_unique_by_id)


@PROPERTY_SETTINGS
@given(local=_UNIQUE_RECORDS, remote=st.lists(_RECORD, max_size=12))
def test_merged_ids_are_unique(local: list[dict], remote: list[dict]) -> None:
    merged = merge_by_key(local, remote, record_id)
    ids = [record["id"] for record in merged]
    assert len(ids) == len(set(ids))


@PROPERTY_SETTINGS
@given(local=st.lists(_RECORD, max_size=12), remote=st.lists(_RECORD, max_size=12))
def test_local_prefix_is_preserved(local: list[dict], remote: list[dict]) -> None:
    merged = merge_by_key(local, remote, record_id)
    assert merged[: len(local)] == local


@PROPERTY_SETTINGS
@given(local=st.lists(_RECORD, max_size=12), remote=st.lists(_RECORD, max_size=12))
def test_every_id_from_either_side_is_present(local: list[dict], remote: list[dict]) -> None:
    merged = merge_by_key(local, remote, record_id)
    assert {r["id"] for r in merged} == {r["id"] for r in local} | {r["id"] for r in remote}


@PROPERTY_SETTINGS
@given(local=st.lists(_RECORD, max_size=12), remote=st.lists(_RECORD, max_size=12))
def test_appended_records_keep_document_order(local: list[dict], remote: list[dict]) -> None:
    merged = merge_by_key(local, remote, record_id)
    appended = merged[len(local) :]
    positions = [remote.index(record) for record in appended]
    assert positions == sorted(positions)


@PROPERTY_SETTINGS
@given(records=_UNIQUE_RECORDS)
def test_merging_with_itself_is_identity(records: list[dict]) -> None:
    assert merge_by_key(records, records, record_id) == records
