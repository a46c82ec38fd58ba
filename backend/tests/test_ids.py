import time

import pytest

from multichat.utils.ids import new_media_id, new_message_id, new_object_id, object_id_timestamp


def test_object_id_shape_and_timestamp() -> None:
    before = int(time.time())
    object_id = new_object_id()
    assert len(object_id) == 24
    int(object_id, 16)
    assert before <= object_id_timestamp(object_id) <= int(time.time())


def test_object_ids_are_unique_and_time_ordered() -> None:
    ids = [new_object_id(timestamp=1_700_000_000 + i) for i in range(5)]
    assert len(set(ids)) == 5
    assert ids == sorted(ids)


def test_object_id_timestamp_rejects_foreign_ids() -> None:
    with pytest.raises(ValueError):
        object_id_timestamp("not-an-id")


def test_message_ids_strictly_increase() -> None:
    ids = [new_message_id() for _ in range(50)]
    assert all(b > a for a, b in zip(ids, ids[1:]))


def test_media_id_is_a_fractional_timestamp() -> None:
    media_id = new_media_id()
    assert isinstance(media_id, float)
    assert abs(media_id - time.time() * 1000) < 5_000


def test_span_reserves_following_ids() -> None:
    first = new_message_id(span=2)
    assert new_message_id() >= first + 2
