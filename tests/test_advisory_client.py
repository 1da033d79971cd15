import httpx
import openai
import pytest

from conftest import FakeOpenAI, completion
from src.core.errors import AdvisoryError
from src.core.models import Module
from src.services.ai_client import AdvisoryClient
from src.services.ai_specs import DEFAULT_QUESTIONS, AdvisoryContext, QueryKind

SUGGESTION = '[MODULO_SUGERIDO]\nnombre: "Chat"\nprecio: "RD$ 6,500"\n[/MODULO_SUGERIDO]'


def _timeout():
    return openai.APITimeoutError(request=httpx.Request("POST", "https://gateway.test/chat/completions"))


def test_first_model_answers():
    fake = FakeOpenAI({"m1": completion("## Hola\n\n" + SUGGESTION)})
    result = AdvisoryClient(client=fake, models=["m1", "m2"]).query(QueryKind.SUGGEST_MODULES, "¿Qué falta?")

    assert result.model == "m1"
    assert "<h2>Hola</h2>" in result.content
    assert "MODULO_SUGERIDO" not in result.content
    assert [(s.name, s.price) for s in result.suggestions] == [("Chat", 6500)]

    call = fake.completions.calls[0]
    assert call["temperature"] == 0.7
    assert call["max_tokens"] == 2048
    assert [m["role"] for m in call["messages"]] == ["system", "user"]


def test_falls_back_to_next_model_on_error_and_empty_answer():
    fake = FakeOpenAI({
        "m1": _timeout(),
        "m2": completion("   "),
        "m3": completion("Respuesta"),
    })
    result = AdvisoryClient(client=fake, models=["m1", "m2", "m3"]).query("freeform", "hola")
    assert result.model == "m3"
    assert [c["model"] for c in fake.completions.calls] == ["m1", "m2", "m3"]


def test_malformed_response_moves_on():
    fake = FakeOpenAI({"m1": object(), "m2": completion("ok")})
    assert AdvisoryClient(client=fake, models=["m1", "m2"]).query("freeform", "x").model == "m2"


def test_all_models_failing_raises_single_error():
    fake = FakeOpenAI({"m1": _timeout(), "m2": _timeout()})
    with pytest.raises(AdvisoryError, match="Todos los modelos fallaron"):
        AdvisoryClient(client=fake, models=["m1", "m2"]).query("analyze")
    assert len(fake.completions.calls) == 2


def test_missing_api_key_fails_without_network():
    with pytest.raises(AdvisoryError):
        AdvisoryClient(api_key="").query("freeform", "hola")


def test_empty_prompt_uses_default_question_and_context():
    fake = FakeOpenAI({"m1": completion("ok")})
    ctx = AdvisoryContext(
        client_name="Ana",
        project_type="Tienda",
        selected_modules=[Module(id=1, name="Blog", price=4500)],
        exchange_rate=60.5,
    )
    AdvisoryClient(client=fake, models=["m1"]).query(QueryKind.TIMELINE, "", ctx)

    system, user = fake.completions.calls[0]["messages"]
    assert "1 USD = RD$60.50" in system["content"]
    assert "Blog - RD$4,500" in user["content"]
    assert DEFAULT_QUESTIONS[QueryKind.TIMELINE] in user["content"]


def test_freeform_without_prompt_is_rejected():
    fake = FakeOpenAI({"m1": completion("ok")})
    with pytest.raises(AdvisoryError):
        AdvisoryClient(client=fake, models=["m1"]).query(QueryKind.FREEFORM, "  ")
    assert fake.completions.calls == []
