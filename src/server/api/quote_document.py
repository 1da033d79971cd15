from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse, Response

from src.core.errors import QuotationValidationError
from src.server.deps import AppContext, get_context
from src.services.quote_document import (
    QuotationDocument,
    build_context_from_quotation,
    render_quotation_html,
)
from src.services.quote_pdf import export_quotation_pdf, pdf_filename

router = APIRouter(prefix="/quotation", tags=["document"])

THEME_PATTERN = "^(light|dark)$"


@router.get(
    "/document",
    response_class=HTMLResponse,
    summary="Offertdokument (HTML-förhandsvisning)",
)
def get_quotation_document(
    theme: str = Query("light", pattern=THEME_PATTERN),
    on: Optional[date] = Query(None, alias="date"),
    ctx: AppContext = Depends(get_context),
):
    doc = QuotationDocument.from_state(ctx.state, usd_rate=ctx.rates.rate)
    try:
        context = build_context_from_quotation(
            doc, ctx.company, theme=theme, generated_on=on or date.today()
        )
    except QuotationValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return HTMLResponse(content=render_quotation_html(context))


@router.get("/document.pdf", summary="Offertdokument som PDF")
def get_quotation_pdf(
    theme: str = Query("light", pattern=THEME_PATTERN),
    on: Optional[date] = Query(None, alias="date"),
    ctx: AppContext = Depends(get_context),
):
    generated_on = on or date.today()
    doc = QuotationDocument.from_state(ctx.state, usd_rate=ctx.rates.rate)
    try:
        pdf = export_quotation_pdf(doc, ctx.company, theme=theme, generated_on=generated_on)
    except QuotationValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    filename = pdf_filename(ctx.company.short_name, doc.client_name, generated_on)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
