from fastapi import APIRouter, Depends

from src.server.deps import AppContext, get_context
from src.server.schemas.quotation import ExchangeRateOut
from src.services.exchange_rate import ExchangeRateProvider

router = APIRouter(prefix="/exchange-rate", tags=["exchange-rate"])


def _rate_out(provider: ExchangeRateProvider) -> ExchangeRateOut:
    snap = provider.snapshot()
    return ExchangeRateOut(
        rate=snap.rate,
        source=snap.source,
        status=snap.status.value,
        fetched_at=snap.fetched_at.isoformat() if snap.fetched_at else None,
    )


@router.get("", response_model=ExchangeRateOut, summary="Aktuell kurs USD -> DOP")
def get_exchange_rate(ctx: AppContext = Depends(get_context)):
    return _rate_out(ctx.rates)


@router.post("/refresh", response_model=ExchangeRateOut, summary="Hämta färsk kurs nu")
def refresh_exchange_rate(ctx: AppContext = Depends(get_context)):
    # misslyckas tyst: föregående kurs ligger kvar
    ctx.rates.refresh()
    return _rate_out(ctx.rates)
