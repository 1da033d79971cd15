from datetime import datetime, timedelta, timezone

import pytest
from sqlmodel import Session, select

from src.core.errors import QuotationValidationError
from src.core.models import Module
from src.core.quotation_state import QuotationState
from src.server.models import QuotationRecord
from src.services.quotation_vault import QuotationVault, reconcile_modules, serialize_record


class Clock:
    def __init__(self):
        self.now = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def vault(session):
    return QuotationVault(session, clock=Clock())


def _save(vault, client="Ana", project="Tienda", modules=None):
    modules = modules if modules is not None else [Module(id=1, name="Blog", price=4500)]
    return vault.save(client_name=client, project_type=project, modules=modules, rate=60.0)


@pytest.mark.parametrize("client,project,modules", [
    ("", "Tienda", [Module(id=1, name="A", price=1)]),
    ("Ana", "  ", [Module(id=1, name="A", price=1)]),
    ("Ana", "Tienda", []),
])
def test_save_rejects_incomplete_quotation(vault, session, client, project, modules):
    with pytest.raises(QuotationValidationError):
        vault.save(client_name=client, project_type=project, modules=modules, rate=60.0)
    assert session.exec(select(QuotationRecord)).all() == []


def test_save_stores_snapshot_and_totals(vault):
    record = _save(vault, modules=[Module(id=1, name="A", price=3000), Module(id=2, name="B", price=3050)])
    data = serialize_record(record)
    assert data["status"] == "draft"
    assert data["total_local"] == 6050
    assert data["total_usd"] == 100.83
    assert data["exchange_rate_at_save"] == 60.0
    assert [m["name"] for m in data["selected_modules"]] == ["A", "B"]


def test_timestamps_survive_a_real_insert(engine):
    with Session(engine) as s:
        record = QuotationVault(s).save(
            client_name="Ana", project_type="Tienda", modules=[Module(id=1, name="A", price=1)], rate=None
        )
        record_id = record.id

    with Session(engine) as s:
        data = serialize_record(s.get(QuotationRecord, record_id))
        vault = QuotationVault(s)
        assert vault.update_status(record_id, "finalized").status == "finalized"
    assert data["created_at"].endswith("+00:00")
    assert data["total_usd"] is None


def test_saved_snapshot_is_independent_of_live_state(vault, small_state):
    small_state.toggle_select(1)
    record = vault.save_state(small_state, rate=60.0)
    small_state.edit_module(1, {"name": "Renombrado", "price": 1})
    assert vault.get(record.id).selected_modules[0]["name"] == "Landing Page"


def test_list_newest_first_with_filters(vault):
    a = _save(vault, client="Ana")
    b = _save(vault, client="Beto", project="Blog personal")
    c = _save(vault, client="Carla")
    vault.update_status(b.id, "finalized")

    assert [r.id for r in vault.list()] == [c.id, b.id, a.id]
    assert [r.id for r in vault.list(status="finalized")] == [b.id]
    assert [r.id for r in vault.list(status="draft")] == [c.id, a.id]
    assert [r.id for r in vault.list(query="blog")] == [b.id]
    assert [r.id for r in vault.list(query="FINALIZED")] == [b.id]


def test_list_rejects_unknown_status(vault):
    with pytest.raises(QuotationValidationError):
        vault.list(status="archived")


def test_unknown_status_on_read_is_draft(vault, session):
    record = _save(vault)
    record.status = "weird"
    session.add(record)
    session.commit()
    assert serialize_record(record)["status"] == "draft"
    assert [r.id for r in vault.list(status="draft")] == [record.id]


def test_update_status_is_idempotent(vault):
    record = _save(vault)
    first = vault.update_status(record.id, "finalized").updated_at
    assert vault.update_status(record.id, "finalized").updated_at == first


def test_update_status_rejects_other_values(vault):
    record = _save(vault)
    with pytest.raises(QuotationValidationError):
        vault.update_status(record.id, "archived")


def test_delete_is_permanent(vault):
    record = _save(vault)
    vault.delete(record.id)
    assert vault.get(record.id) is None
    with pytest.raises(LookupError):
        vault.delete(record.id)


def test_load_reuses_live_id_and_matches_by_name_price(vault):
    state = QuotationState([
        Module(id=1, name="Landing", price=3500),
        Module(id=2, name="Blog", price=4500),
    ])
    record = _save(vault, modules=[
        Module(id=1, name="Landing", price=3500),
        Module(id=77, name="Blog", price=4500),
    ])
    vault.load_into(record, state)
    assert state.selected_ids() == [1, 2]
    assert len(state.modules()) == 2
    assert state.client_name == "Ana"
    assert state.project_type == "Tienda"


def test_load_forks_unknown_module_with_fresh_id(vault):
    state = QuotationState([Module(id=1, name="Landing", price=3500)], next_id=5)
    record = _save(vault, modules=[Module(id=40, name="Chat", price=6500)])
    vault.load_into(record, state)

    forked = state.get_module(state.selected_ids()[0])
    assert forked.name == "Chat"
    assert forked.id > 5
    assert state.next_id > forked.id
    assert state.add_module({"name": "Otro", "price": 1}).id == forked.id + 1


def test_reconcile_tie_picks_first_in_catalog_order():
    live = [Module(id=3, name="Blog", price=10), Module(id=8, name="Blog", price=10)]
    catalog, selected, _ = reconcile_modules(live, 9, [{"id": 50, "name": "Blog", "price": 10}])
    assert selected == [3]
    assert catalog == live


def test_reconcile_forked_id_is_above_next_id():
    live = [Module(id=1, name="Landing", price=3500)]
    catalog, selected, counter = reconcile_modules(live, 5, [{"id": 40, "name": "Chat", "price": 6500}])
    assert selected == [6]
    assert catalog[-1].name == "Chat"
    assert counter == 7
