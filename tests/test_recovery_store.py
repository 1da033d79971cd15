import json
import threading
import time

from src.core.quotation_state import QuotationState
from src.services.recovery_store import RecoveryStore


def test_missing_and_corrupt_files_load_as_none(tmp_path):
    store = RecoveryStore(tmp_path)
    assert store.load() is None
    store.path.write_text("{not json", encoding="utf-8")
    assert store.load() is None


def test_flush_writes_only_the_last_payload(tmp_path):
    store = RecoveryStore(tmp_path, delay=60)
    store.schedule({"n": 1})
    store.schedule({"n": 2})
    assert not store.path.exists()

    assert store.flush() is True
    assert json.loads(store.path.read_text(encoding="utf-8")) == {"n": 2}
    assert store.flush() is False


def test_debounced_write_lands_after_quiet_period(tmp_path):
    store = RecoveryStore(tmp_path, delay=0.05)
    store.schedule({"n": 1})
    deadline = time.time() + 2
    while not store.path.exists() and time.time() < deadline:
        time.sleep(0.01)
    assert store.load() == {"n": 1}


def test_state_survives_restart(tmp_path):
    store = RecoveryStore(tmp_path, delay=60)
    state = QuotationState()
    state.add_listener(store.schedule)
    state.set_client("Ana", "Tienda")
    state.toggle_select(3)
    state.add_module({"name": "Chat", "price": 6500})
    store.flush()

    restored = QuotationState.from_storage(RecoveryStore(tmp_path).load())
    assert restored.client_name == "Ana"
    assert restored.selected_ids() == [3]
    assert restored.next_id == 16
    assert restored.get_module(15).name == "Chat"
    assert store.path.name == "webnova-quotation.json"


def test_concurrent_changes_persist_the_latest_state(small_state, tmp_path):
    store = RecoveryStore(tmp_path, delay=60)
    entered, release = threading.Event(), threading.Event()
    held = []

    def slow_listener(payload):
        # första anropet (tråd A) hålls kvar tills huvudtråden har ändrat
        if not held:
            held.append(payload)
            entered.set()
            release.wait(5)

    small_state.add_listener(slow_listener)
    small_state.add_listener(store.schedule)

    first = threading.Thread(target=small_state.toggle_select, args=(1,))
    first.start()
    assert entered.wait(5)

    second = threading.Thread(target=small_state.toggle_select, args=(2,))
    second.start()
    second.join(0.1)
    release.set()
    first.join(5)
    second.join(5)

    store.flush()
    assert small_state.selected_ids() == [1, 2]
    assert store.load()["selectedModuleIds"] == [1, 2]
