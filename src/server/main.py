import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.server.api import advisor, exchange_rate, quotation, quotations, quote_document, system
from src.server.db.session import init_db
from src.server.deps import build_app_context, set_context
from src.server.logging_config import setup_logging
from src.server.settings.config import settings

log = logging.getLogger("webnova.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    log.info("Initierar databasen...")
    init_db()

    ctx = build_app_context(settings)
    set_context(ctx)
    ctx.rates.start()
    log.info("Arbetsminnet återställt: %s moduler", len(ctx.state.modules()))

    yield

    log.info("Avslutar appen...")
    ctx.rates.stop()
    # sista versionen av arbetsminnet skrivs innan processen avslutas
    if ctx.recovery is not None:
        ctx.recovery.flush()
    set_context(None)


app = FastAPI(title=settings.app_name, lifespan=lifespan)

# CORS – så frontenden kan prata med backend
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(system.router)
app.include_router(quotation.router)         # /quotation..., arbetsminnet
app.include_router(quote_document.router)    # /quotation/document(.pdf)
app.include_router(exchange_rate.router)
app.include_router(quotations.router)        # /quotations..., kräver API-nyckel om API_KEY är satt
app.include_router(advisor.router)
