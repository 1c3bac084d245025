import pytest

from core.error_handling import SelectionCapacityError
from core.models import RawFrame
from core.selection import SelectionStore


def test_toggle_adds_then_removes():
    store = SelectionStore(max_selected=3)
    assert store.toggle(1.0) is True
    assert 1.0 in store
    assert store.toggle(1.0) is False
    assert 1.0 not in store
    assert len(store) == 0


def test_toggle_at_capacity_raises_without_mutation():
    store = SelectionStore(max_selected=2)
    store.toggle(0.0)
    store.toggle(0.5)
    with pytest.raises(SelectionCapacityError, match="up to 2 frames"):
        store.toggle(1.0)
    assert store.timestamps == [0.0, 0.5]


def test_removal_always_allowed_at_capacity():
    store = SelectionStore(max_selected=1)
    store.toggle(0.0)
    assert store.toggle(0.0) is False
    assert store.toggle(2.0) is True


def test_select_all_truncates_to_first_candidates():
    store = SelectionStore(max_selected=8)
    store.toggle(99.0)
    store.select_all([i * 0.25 for i in range(12)])
    assert store.timestamps == [i * 0.25 for i in range(8)]


def test_select_all_ignores_repeated_candidates():
    store = SelectionStore(max_selected=3)
    store.select_all([1.0, 1.0, 2.0, 1.0, 3.0, 4.0])
    assert store.timestamps == [1.0, 2.0, 3.0]


def test_deselect_all():
    store = SelectionStore()
    store.select_all([0.0, 1.0])
    store.deselect_all()
    assert list(store) == []


def test_pick_keeps_frame_order():
    frames = [RawFrame(timestamp=ts, index=i, image=b"x") for i, ts in enumerate([0.0, 0.5, 1.0, 1.5])]
    store = SelectionStore()
    store.toggle(1.5)
    store.toggle(0.0)
    store.toggle(1.0)
    assert [f.timestamp for f in store.pick(frames)] == [0.0, 1.0, 1.5]


def test_pick_includes_duplicate_timestamps():
    frames = [RawFrame(timestamp=0.5, index=0, image=b"a"), RawFrame(timestamp=0.5, index=1, image=b"b")]
    store = SelectionStore()
    store.toggle(0.5)
    assert len(store.pick(frames)) == 2


def test_rejects_non_positive_capacity():
    with pytest.raises(ValueError):
        SelectionStore(max_selected=0)
