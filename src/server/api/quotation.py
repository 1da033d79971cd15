from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException

from src.core.errors import SnapshotImportError
from src.core.money import to_usd
from src.server.deps import AppContext, get_context
from src.server.schemas.quotation import ClientIn, ModuleIn, QuotationOut, ToggleOut

router = APIRouter(prefix="/quotation", tags=["quotation"])


# ==============================
# HELPERS
# ==============================

def quotation_view(ctx: AppContext) -> QuotationOut:
    """Arbetsminnet som det visas i UI:t, inklusive totalsumma i båda valutorna."""
    rate = ctx.rates.rate
    with ctx.state.locked():
        storage = ctx.state.to_storage()
        total = ctx.state.total_amount()
    return QuotationOut(
        client_name=storage["clientName"],
        project_type=storage["projectType"],
        modules=storage["modules"],
        selected_module_ids=storage["selectedModuleIds"],
        next_id=storage["nextId"],
        total_amount=total,
        total_usd=to_usd(total, rate),
        exchange_rate=rate,
    )


def _module_not_found(module_id: int) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Módulo {module_id} no encontrado")


# ==============================
# LÄSNING / KUND
# ==============================

@router.get("", response_model=QuotationOut, summary="Arbetsminnet (katalog, urval, total)")
def get_quotation(ctx: AppContext = Depends(get_context)):
    return quotation_view(ctx)


@router.put("/client", response_model=QuotationOut)
def set_client(payload: ClientIn, ctx: AppContext = Depends(get_context)):
    ctx.state.set_client(payload.client_name, payload.project_type)
    return quotation_view(ctx)


# ==============================
# URVAL
# ==============================

@router.post("/selection/{module_id}", response_model=ToggleOut, summary="Växla om modulen är vald")
def toggle_selection(module_id: int, ctx: AppContext = Depends(get_context)):
    selected = ctx.state.toggle_select(module_id)
    return ToggleOut(module_id=module_id, selected=selected, total_amount=ctx.state.total_amount())


@router.delete("/selection", response_model=QuotationOut)
def clear_selection(ctx: AppContext = Depends(get_context)):
    ctx.state.clear_selection()
    return quotation_view(ctx)


# ==============================
# MODULER
# ==============================

@router.post("/modules", status_code=201)
def add_module(payload: ModuleIn, ctx: AppContext = Depends(get_context)):
    return ctx.state.add_module(payload).to_json()


@router.put("/modules/{module_id}")
def edit_module(module_id: int, payload: ModuleIn, ctx: AppContext = Depends(get_context)):
    try:
        return ctx.state.edit_module(module_id, payload).to_json()
    except KeyError:
        raise _module_not_found(module_id)


@router.delete("/modules/{module_id}")
def delete_module(module_id: int, ctx: AppContext = Depends(get_context)):
    try:
        removed = ctx.state.delete_module(module_id)
    except KeyError:
        raise _module_not_found(module_id)
    return {"status": "ok", "deleted": removed.id}


# ==============================
# EXPORT / IMPORT
# ==============================

@router.get("/export", summary="Exportfil (JSON, version 3.0)")
def export_quotation(ctx: AppContext = Depends(get_context)) -> Dict[str, Any]:
    return ctx.state.export_snapshot()


@router.post("/import", response_model=QuotationOut)
def import_quotation(payload: Any = Body(...), ctx: AppContext = Depends(get_context)):
    try:
        ctx.state.import_snapshot(payload)
    except SnapshotImportError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return quotation_view(ctx)
