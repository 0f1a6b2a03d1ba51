from __future__ import annotations

from app.graph.state import create_initial_state
from services.run_store import RunStore


def test_put_and_get_roundtrip():
    store = RunStore()
    state = create_initial_state(["https://a.example"])

    store.put(state)

    assert store.get(state.run_id) is state
    assert store.get("missing") is None


def test_publish_replaces_whole_state():
    store = RunStore()
    state = create_initial_state(["https://a.example"])
    store.put(state)

    newer = state.model_copy(update={"is_analyzing": False})
    store.publish(newer)

    assert store.get(state.run_id) is newer


def test_clear_discards_run_and_ignores_later_updates():
    store = RunStore()
    state = create_initial_state(["https://a.example"])
    store.put(state)

    assert store.clear(state.run_id) is True
    # 裏で走り続けた分析からの更新は捨てる
    store.publish(state.model_copy(update={"is_analyzing": False}))

    assert store.get(state.run_id) is None
    assert store.clear(state.run_id) is False


def test_cleared_mark_is_dropped_after_final_snapshot():
    store = RunStore()
    state = create_initial_state(["https://a.example"])
    store.put(state)
    store.clear(state.run_id)

    store.publish(state)
    assert state.run_id in store._cleared

    store.publish(state.model_copy(update={"is_analyzing": False}))
    assert state.run_id not in store._cleared
    assert store.get(state.run_id) is None


def test_clearing_finished_run_leaves_no_mark():
    store = RunStore()
    state = create_initial_state(["https://a.example"]).model_copy(update={"is_analyzing": False})
    store.put(state)

    assert store.clear(state.run_id) is True
    assert state.run_id not in store._cleared
