from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session

from src.core.errors import QuotationValidationError
from src.server.api.quotation import quotation_view
from src.server.db.session import get_session
from src.server.deps import AppContext, get_context, verify_api_key
from src.server.models import QuotationRecord
from src.server.schemas.quotation import QuotationOut, SaveQuotationIn, StatusIn
from src.services.quotation_vault import QuotationVault, serialize_record

router = APIRouter(
    prefix="/quotations",
    tags=["quotations"],
    dependencies=[Depends(verify_api_key)],
)


# ==============================
# HELPERS
# ==============================

def _require(vault: QuotationVault, quotation_id: str) -> QuotationRecord:
    record = vault.get(quotation_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Cotización no encontrada")
    return record


# ==============================
# SPARA
# ==============================

@router.post("", status_code=201, summary="Spara arbetsminnets urval som ny offert")
def save_quotation(
    payload: SaveQuotationIn,
    session: Session = Depends(get_session),
    ctx: AppContext = Depends(get_context),
):
    vault = QuotationVault(session)
    try:
        record = vault.save_state(
            ctx.state,
            rate=ctx.rates.rate,
            client_name=payload.client_name,
            project_type=payload.project_type,
            client_email=payload.client_email,
            client_phone=payload.client_phone,
            project_description=payload.project_description,
            discount_percent=payload.discount_percent,
            notes=payload.notes,
        )
    except QuotationValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return serialize_record(record)


# ==============================
# LISTA / HÄMTA
# ==============================

@router.get("", summary="Lista sparade offerter (nyast först)")
@router.get("/", include_in_schema=False)
def list_quotations(
    status: str = Query("all"),
    q: str = Query(""),
    session: Session = Depends(get_session),
) -> List[dict]:
    try:
        rows = QuotationVault(session).list(status=status, query=q)
    except QuotationValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [serialize_record(r) for r in rows]


@router.get("/{quotation_id}")
def get_quotation_record(quotation_id: str, session: Session = Depends(get_session)):
    return serialize_record(_require(QuotationVault(session), quotation_id))


# ==============================
# STATUS / TA BORT
# ==============================

@router.patch("/{quotation_id}/status")
def update_quotation_status(
    quotation_id: str,
    payload: StatusIn,
    session: Session = Depends(get_session),
):
    vault = QuotationVault(session)
    _require(vault, quotation_id)
    try:
        record = vault.update_status(quotation_id, payload.status)
    except QuotationValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return serialize_record(record)


@router.delete("/{quotation_id}")
def delete_quotation(quotation_id: str, session: Session = Depends(get_session)):
    vault = QuotationVault(session)
    _require(vault, quotation_id)
    vault.delete(quotation_id)
    return {"status": "ok", "deleted": quotation_id}


# ==============================
# LADDA IN
# ==============================

@router.post("/{quotation_id}/load", response_model=QuotationOut)
def load_quotation(
    quotation_id: str,
    session: Session = Depends(get_session),
    ctx: AppContext = Depends(get_context),
):
    vault = QuotationVault(session)
    vault.load_into(_require(vault, quotation_id), ctx.state)
    return quotation_view(ctx)
