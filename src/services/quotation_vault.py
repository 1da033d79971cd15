from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError
from sqlmodel import Session, select

from src.core.catalog import next_id_for
from src.core.errors import QuotationValidationError
from src.core.models import Module, ModuleData
from src.core.money import to_usd
from src.core.quotation_state import QuotationState
from src.server.models import QuotationRecord, as_utc, utcnow

log = logging.getLogger("webnova.vault")

STATUS_DRAFT = "draft"
STATUS_FINALIZED = "finalized"
STATUSES = (STATUS_DRAFT, STATUS_FINALIZED)
STATUS_FILTERS = ("all",) + STATUSES


def normalize_status(status: Optional[str]) -> str:
    """Allt utom 'finalized' räknas som 'draft'."""
    return STATUS_FINALIZED if status == STATUS_FINALIZED else STATUS_DRAFT


def validate_for_save(client_name: str, project_type: str, modules: List[Module]) -> None:
    """
    Kontrolleras innan något nätverks-/databasanrop görs.
    """
    if not (client_name or "").strip():
        raise QuotationValidationError("Por favor, ingresa el nombre del cliente.")
    if not (project_type or "").strip():
        raise QuotationValidationError("Por favor, indica el tipo de proyecto.")
    if not modules:
        raise QuotationValidationError("Selecciona al menos un módulo antes de guardar.")


def _iso(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat() if value else None


def serialize_record(record: QuotationRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "client_name": record.client_name,
        "client_email": record.client_email,
        "client_phone": record.client_phone,
        "project_type": record.project_type,
        "project_description": record.project_description,
        "selected_modules": list(record.selected_modules or []),
        "total_local": record.total_local,
        "total_usd": record.total_usd,
        "exchange_rate_at_save": record.exchange_rate_at_save,
        "discount_percent": record.discount_percent,
        "status": normalize_status(record.status),
        "notes": record.notes,
        "created_at": _iso(record.created_at),
        "updated_at": _iso(record.updated_at),
    }


# ---------------------------------------------------------
# Avstämning sparad ögonblicksbild -> levande katalog
# ---------------------------------------------------------

def _parse_snapshot_module(raw: Any) -> Tuple[Optional[int], Optional[ModuleData]]:
    if isinstance(raw, Module):
        return raw.id, raw.data()
    if not isinstance(raw, dict):
        return None, None
    try:
        data = ModuleData.model_validate({k: v for k, v in raw.items() if k != "id"})
    except ValidationError:
        return None, None
    mid = raw.get("id")
    if isinstance(mid, bool) or not isinstance(mid, int):
        mid = None
    return mid, data


def reconcile_modules(
    live: List[Module],
    next_id: int,
    snapshot: Iterable[Any],
) -> Tuple[List[Module], List[int], int]:
    """
    Stämmer av en sparad offerts moduler mot den levande katalogen.

    För varje sparad modul:
      1) finns samma id i katalogen -> återanvänd det id:t
      2) annars, första modulen i katalogordning med samma (namn, pris)
      3) annars läggs en kopia till i katalogen med nytt id

    Returnerar (ny katalog, urval, nytt next_id).
    """
    catalog = list(live)
    live_ids = {m.id for m in live}
    # kopior får id strikt över nuvarande next_id
    counter = next_id_for(catalog, floor=next_id + 1)
    selected: List[int] = []

    for raw in snapshot:
        mid, data = _parse_snapshot_module(raw)
        if data is None:
            continue

        chosen: Optional[int] = None
        if mid is not None and mid in live_ids:
            chosen = mid
        else:
            for m in catalog:
                if m.name == data.name and m.price == data.price:
                    chosen = m.id
                    break

        if chosen is None:
            forked = Module(id=counter, **data.model_dump())
            catalog.append(forked)
            chosen = counter
            counter += 1

        if chosen not in selected:
            selected.append(chosen)

    return catalog, selected, counter


class QuotationVault:
    """
    CRUD mot tabellen quotations.

    Borttagning är permanent (ingen soft-delete). Bekräftelse är UI:ts sak.
    """

    def __init__(self, session: Session, *, clock: Callable[[], datetime] = utcnow) -> None:
        self.session = session
        self.clock = clock

    # -------------------------------------------------------------
    #  SPARA
    # -------------------------------------------------------------
    def save(
        self,
        *,
        client_name: str,
        project_type: str,
        modules: List[Module],
        rate: Optional[float],
        total_usd: Optional[float] = None,
        client_email: Optional[str] = None,
        client_phone: Optional[str] = None,
        project_description: Optional[str] = None,
        discount_percent: float = 0,
        notes: Optional[str] = None,
    ) -> QuotationRecord:
        validate_for_save(client_name, project_type, modules)

        total_local = sum(m.price for m in modules)
        if total_usd is None:
            total_usd = to_usd(total_local, rate) if rate is not None else None

        now = self.clock()
        record = QuotationRecord(
            client_name=client_name.strip(),
            client_email=client_email,
            client_phone=client_phone,
            project_type=project_type.strip(),
            project_description=project_description,
            selected_modules=[m.to_json() for m in modules],
            total_local=total_local,
            total_usd=total_usd,
            exchange_rate_at_save=rate,
            discount_percent=discount_percent or 0,
            status=STATUS_DRAFT,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        log.info("Offert sparad %s (%s)", record.id, record.client_name, extra={"quotation_id": record.id})
        return record

    def save_state(
        self,
        state: QuotationState,
        *,
        rate: Optional[float],
        client_name: Optional[str] = None,
        project_type: Optional[str] = None,
        **extra: Any,
    ) -> QuotationRecord:
        """
        Sparar arbetsminnets aktuella urval som en ny ögonblicksbild.
        Kund/projekttyp kan skrivas över utan att arbetsminnet ändras.
        """
        with state.locked():
            return self.save(
                client_name=state.client_name if client_name is None else client_name,
                project_type=state.project_type if project_type is None else project_type,
                modules=state.selected_modules(),
                rate=rate,
                **extra,
            )

    # -------------------------------------------------------------
    #  LISTA / HÄMTA
    # -------------------------------------------------------------
    def list(self, status: str = "all", query: str = "") -> List[QuotationRecord]:
        """
        Nyast först. status: 'all' | 'draft' | 'finalized'.
        query matchas (skiftlägesokänsligt) mot kund, projekttyp och status.
        """
        if status not in STATUS_FILTERS:
            raise QuotationValidationError(f"Estado desconocido: {status}")

        rows = self.session.exec(
            select(QuotationRecord).order_by(QuotationRecord.created_at.desc())
        ).all()

        q = (query or "").strip().lower()
        out: List[QuotationRecord] = []
        for row in rows:
            st = normalize_status(row.status)
            if status != "all" and st != status:
                continue
            if q:
                haystack = f"{row.client_name} {row.project_type} {st}".lower()
                if q not in haystack:
                    continue
            out.append(row)
        return out

    def get(self, quotation_id: str) -> Optional[QuotationRecord]:
        return self.session.get(QuotationRecord, quotation_id)

    def _require(self, quotation_id: str) -> QuotationRecord:
        record = self.get(quotation_id)
        if record is None:
            raise LookupError(quotation_id)
        return record

    # -------------------------------------------------------------
    #  STATUS / TA BORT
    # -------------------------------------------------------------
    def update_status(self, quotation_id: str, status: str) -> QuotationRecord:
        if status not in STATUSES:
            raise QuotationValidationError(f"Estado desconocido: {status}")

        record = self._require(quotation_id)
        if record.status == status:
            return record

        record.status = status
        record.updated_at = self.clock()
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        log.info("Offert %s -> %s", record.id, status, extra={"quotation_id": record.id, "status": status})
        return record

    def delete(self, quotation_id: str) -> None:
        record = self._require(quotation_id)
        self.session.delete(record)
        self.session.commit()
        log.info("Offert borttagen %s", quotation_id, extra={"quotation_id": quotation_id})

    # -------------------------------------------------------------
    #  LADDA IN I ARBETSMINNET
    # -------------------------------------------------------------
    def load_into(self, record: QuotationRecord, state: QuotationState) -> None:
        """
        Ersätter kund, projekttyp och urval i arbetsminnet med offertens,
        efter avstämning mot den levande katalogen (se reconcile_modules).
        """
        with state.locked():
            catalog, selected, counter = reconcile_modules(
                state.modules(), state.next_id, record.selected_modules or []
            )
            state.replace(
                client_name=record.client_name,
                project_type=record.project_type,
                modules=catalog,
                selected=selected,
                next_id=counter,
            )
