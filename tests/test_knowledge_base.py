from src.core.models import Module
from src.server.models import KnowledgeEntry, PriceResearch
from src.services.ai_specs import NO_PRICE_DATA, AdvisoryContext, QueryKind, build_system_prompt
from src.services.knowledge_base import KnowledgeBase, format_knowledge, format_price


def test_format_lines():
    entry = KnowledgeEntry(category="Mercado", topic="Precios", content="Suben 10% al año", confidence_score=0.9)
    assert format_knowledge(entry) == "[Mercado/Precios]: Suben 10% al año (Confianza: 90%)"

    row = PriceResearch(service_type="Tienda online", price_min_dop=80000, price_max_dop=250000,
                        price_avg_dop=150000, price_usd=2500)
    assert format_price(row) == "Tienda online: RD$80,000-250,000 (Promedio: RD$150,000, ~$2,500 USD)"
    assert format_price(PriceResearch(service_type="Blog")) == "Blog: RD$?-?"


def test_market_context_uses_active_local_and_verified_rows(session):
    kb = KnowledgeBase(session)
    kb.add_entry(category="Mercado", topic="A", content="activo")
    kb.add_entry(category="Mercado", topic="B", content="inactivo", is_active=False)
    kb.add_entry(category="Mercado", topic="C", content="otro país", country="MX")
    kb.add_price(service_type="Landing", price_min_dop=15000, price_max_dop=40000, is_verified=True)
    kb.add_price(service_type="Sin verificar", price_min_dop=1, price_max_dop=2)

    market = kb.market_context()
    assert market.knowledge == ["[Mercado/A]: activo"]
    assert market.prices == ["Landing: RD$15,000-40,000"]


def test_log_inference_and_feedback(session):
    kb = KnowledgeBase(session)
    row = kb.log_inference(query_type="analyze", user_query="hola", ai_response="<p>ok</p>",
                           model="m1", context_used={"knowledgeCount": 0}, processing_time_ms=12)
    assert row.id is not None
    assert row.created_at is not None

    kb.record_feedback(row.id, was_helpful=True, feedback="útil")
    assert [(r.was_helpful, r.feedback) for r in kb.recent_logs()] == [(True, "útil")]


def test_system_prompt_carries_market_data_and_catalog():
    context = AdvisoryContext(
        knowledge=["[Mercado/A]: activo"],
        prices=["Landing: RD$15,000-40,000"],
        catalog=[Module(id=1, name="Blog", price=4500, category="Frontend", estimatedHours=8)],
        exchange_rate=60.5,
    )
    prompt = build_system_prompt(QueryKind.PRICE_RESEARCH, context)
    assert "BASE DE CONOCIMIENTO DEL MERCADO DOMINICANO:\n[Mercado/A]: activo" in prompt
    assert "INVESTIGACIÓN DE PRECIOS EN RD:\nLanding: RD$15,000-40,000" in prompt
    assert "- Blog (Frontend): RD$4,500 [Horas: 8h]" in prompt
    assert NO_PRICE_DATA not in prompt


def test_price_research_without_data_says_so():
    prompt = build_system_prompt(QueryKind.PRICE_RESEARCH, AdvisoryContext())
    assert NO_PRICE_DATA in prompt
    assert "INVESTIGACIÓN DE PRECIOS" not in prompt
