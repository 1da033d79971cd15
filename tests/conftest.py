# tests/conftest.py
import os, sys
# lägg till projektroten (mappen som innehåller "src") först i sys.path
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from types import SimpleNamespace

import pytest
from sqlmodel import Session

from src.core.models import Module
from src.core.quotation_state import QuotationState
from src.server.db.session import init_db, make_engine
from src.services.ai_client import AdvisoryClient
from src.services.exchange_rate import ExchangeRateProvider


# ---------------------------------------------------------
# Fejk-klient för OpenAI-SDK:n (ingen nätverkstrafik)
# ---------------------------------------------------------

def completion(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


class FakeCompletions:
    """
    replies: modell -> svar. Ett svar som är en Exception kastas,
    allt annat returneras som det är.
    """

    def __init__(self, replies):
        self.replies = replies
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.get(kwargs["model"])
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeOpenAI:
    def __init__(self, replies):
        self.completions = FakeCompletions(replies)
        self.chat = SimpleNamespace(completions=self.completions)


# ---------------------------------------------------------
# Fixtures
# ---------------------------------------------------------

@pytest.fixture
def engine():
    eng = make_engine("sqlite://")
    init_db(eng)
    return eng


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


@pytest.fixture
def small_state():
    return QuotationState(
        [
            Module(id=1, name="Landing Page", price=100, description="Una página"),
            Module(id=2, name="Blog", price=250, description="Artículos"),
        ],
        client_name="Ana Pérez",
        project_type="Tienda",
    )


@pytest.fixture
def fake_openai():
    return FakeOpenAI({})


@pytest.fixture
def app_context(engine, fake_openai, small_state):
    from src.server.deps import AppContext
    from src.services.quote_document import CompanyInfo

    rates = ExchangeRateProvider(
        lambda: Session(engine),
        default_rate=60.0,
        fetcher=lambda: (62.5, "test"),
    )
    advisor = AdvisoryClient(client=fake_openai, models=["m1", "m2"])
    return AppContext(state=small_state, rates=rates, advisor=advisor, company=CompanyInfo())


@pytest.fixture
def client(engine, app_context, monkeypatch):
    from fastapi.testclient import TestClient

    from src.server.db.session import get_session
    from src.server.deps import get_context
    from src.server.main import app
    from src.server.settings.config import settings

    def _session():
        with Session(engine) as s:
            yield s

    monkeypatch.setattr(settings, "api_key", "")
    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_context] = lambda: app_context
    # utan "with": lifespan (riktig databas, bakgrundstråd) körs inte
    yield TestClient(app)
    app.dependency_overrides.clear()
