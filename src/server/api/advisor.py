import time
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlmodel import Session

from src.core.errors import AdvisoryError
from src.core.sanitize import ERROR_BLOCK_HTML
from src.server.db.session import get_session
from src.server.deps import AppContext, get_context, verify_api_key
from src.server.models import InferenceLog, KnowledgeEntry, PriceResearch
from src.server.schemas.quotation import (
    AdvisorQueryIn,
    AdvisorQueryOut,
    FeedbackIn,
    KnowledgeIn,
    ModuleIn,
    PriceResearchIn,
)
from src.services.ai_specs import AdvisoryContext, QueryKind
from src.services.knowledge_base import KnowledgeBase

router = APIRouter(prefix="/advisor", tags=["advisor"])


# ==============================
# FRÅGA
# ==============================

@router.post("/query", response_model=AdvisorQueryOut, summary="Fråga AI-rådgivaren")
def advisor_query(
    payload: AdvisorQueryIn,
    session: Session = Depends(get_session),
    ctx: AppContext = Depends(get_context),
):
    try:
        kind = QueryKind(payload.kind)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Tipo de consulta desconocido: {payload.kind}")

    kb = KnowledgeBase(session)
    market = kb.market_context()
    with ctx.state.locked():
        context = AdvisoryContext(
            client_name=ctx.state.client_name,
            project_type=ctx.state.project_type,
            selected_modules=ctx.state.selected_modules(),
            budget=payload.budget,
            exchange_rate=ctx.rates.rate,
            knowledge=market.knowledge,
            prices=market.prices,
            catalog=ctx.state.modules(),
        )

    started = time.perf_counter()
    try:
        result = ctx.advisor.query(kind, payload.prompt, context)
    except AdvisoryError as e:
        # Panelen visar alltid sanerad HTML, aldrig ett rått fel
        return JSONResponse(
            status_code=502,
            content={"content": ERROR_BLOCK_HTML, "suggestions": [], "model": None, "detail": str(e)},
        )

    entry = kb.log_inference(
        query_type=kind.value,
        user_query=payload.prompt,
        ai_response=result.content,
        model=result.model,
        context_used={
            "knowledgeCount": len(market.knowledge),
            "pricesCount": len(market.prices),
            "modulesCount": len(context.catalog),
            "exchangeRate": context.exchange_rate,
        },
        processing_time_ms=int((time.perf_counter() - started) * 1000),
    )

    return AdvisorQueryOut(
        content=result.content,
        suggestions=[s.model_dump(by_alias=True, exclude_none=True) for s in result.suggestions],
        model=result.model,
        log_id=entry.id if entry is not None else None,
    )


@router.post("/accept", status_code=201, summary="Lägg till ett modulförslag i katalogen")
def advisor_accept(payload: ModuleIn, ctx: AppContext = Depends(get_context)):
    return ctx.state.add_module(payload).to_json()


# ==============================
# KUNSKAPSBAS / LOGG (skyddat)
# ==============================

@router.post(
    "/knowledge",
    status_code=201,
    response_model=KnowledgeEntry,
    dependencies=[Depends(verify_api_key)],
    summary="Lägg till marknadskunskap",
)
def add_knowledge(payload: KnowledgeIn, session: Session = Depends(get_session)):
    return KnowledgeBase(session).add_entry(**payload.model_dump())


@router.get("/knowledge", response_model=List[KnowledgeEntry], dependencies=[Depends(verify_api_key)])
def list_knowledge(session: Session = Depends(get_session)):
    return KnowledgeBase(session).active_entries()


@router.post(
    "/prices",
    status_code=201,
    response_model=PriceResearch,
    dependencies=[Depends(verify_api_key)],
    summary="Lägg till en prisundersökning",
)
def add_price(payload: PriceResearchIn, session: Session = Depends(get_session)):
    return KnowledgeBase(session).add_price(**payload.model_dump())


@router.get("/logs", response_model=List[InferenceLog], dependencies=[Depends(verify_api_key)])
def list_logs(limit: int = Query(50, ge=1, le=500), session: Session = Depends(get_session)):
    return KnowledgeBase(session).recent_logs(limit)


@router.patch("/logs/{log_id}", response_model=InferenceLog, dependencies=[Depends(verify_api_key)])
def give_feedback(log_id: int, payload: FeedbackIn, session: Session = Depends(get_session)):
    try:
        return KnowledgeBase(session).record_feedback(
            log_id, was_helpful=payload.was_helpful, feedback=payload.feedback
        )
    except LookupError:
        raise HTTPException(status_code=404, detail="Registro no encontrado")
