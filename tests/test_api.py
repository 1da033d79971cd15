import httpx
import openai

from conftest import completion


def test_health_and_routes(client):
    assert client.get("/health").json()["status"] == "ok"
    paths = {r["path"] for r in client.get("/__debug/routes").json()}
    assert "/quotation/document.pdf" in paths
    assert "/advisor/query" in paths
    assert "/quotations/{quotation_id}/status" in paths
    routes = {r["path"]: r for r in client.get("/__debug/routes").json()}
    assert routes["/quotation/selection"]["methods"] == ["DELETE"]


def test_quotation_flow(client):
    r = client.put("/quotation/client", json={"clientName": "Beto", "projectType": "Blog"})
    assert r.json()["client_name"] == "Beto"

    r = client.post("/quotation/selection/2")
    assert r.json() == {"module_id": 2, "selected": True, "total_amount": 250}

    r = client.post("/quotation/modules", json={"name": "Chat", "price": 6500, "estimatedHours": 12})
    assert r.status_code == 201
    assert r.json()["id"] == 3

    r = client.put("/quotation/modules/3", json={"name": "Chat en vivo", "price": 7000})
    assert r.json()["name"] == "Chat en vivo"

    client.post("/quotation/selection/3")
    body = client.get("/quotation").json()
    assert body["total_amount"] == 7250
    assert body["selected_module_ids"] == [2, 3]
    assert body["total_usd"] == round(7250 / 60.0, 2)

    assert client.delete("/quotation/modules/3").json()["deleted"] == 3
    assert client.get("/quotation").json()["selected_module_ids"] == [2]
    assert client.delete("/quotation/selection").json()["total_amount"] == 0


def test_module_errors(client):
    assert client.put("/quotation/modules/99", json={"name": "X", "price": 1}).status_code == 404
    assert client.delete("/quotation/modules/99").status_code == 404
    assert client.post("/quotation/modules", json={"name": "", "price": 1}).status_code == 422
    assert client.post("/quotation/modules", json={"name": "X", "price": -1}).status_code == 422


def test_export_and_import(client):
    exported = client.get("/quotation/export").json()
    assert exported["version"] == "3.0"
    assert exported["client"] == "Ana Pérez"

    r = client.post("/quotation/import", json={"client": "Nuevo"})
    assert r.status_code == 422
    assert client.get("/quotation").json()["client_name"] == "Ana Pérez"

    r = client.post("/quotation/import", json={
        "client": "Nuevo", "projectType": "App",
        "modules": [{"id": 5, "name": "M", "price": 10}], "selected": [5],
    })
    assert r.json()["next_id"] == 6
    assert r.json()["total_amount"] == 10


def test_document_html_and_pdf(client):
    assert client.get("/quotation/document").status_code == 400
    client.post("/quotation/selection/1")

    r = client.get("/quotation/document", params={"theme": "dark", "date": "2026-10-17"})
    assert r.status_code == 200
    assert "17 de octubre de 2026" in r.text

    r = client.get("/quotation/document.pdf", params={"date": "2026-10-17"})
    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert "Cotizacion-WebNovaLab-Ana-Perez-2026-10-17.pdf" in r.headers["content-disposition"]
    assert r.content.startswith(b"%PDF")

    assert client.get("/quotation/document", params={"theme": "neon"}).status_code == 422


def test_exchange_rate_refresh(client):
    assert client.get("/exchange-rate").json()["status"] == "uninitialized"
    body = client.post("/exchange-rate/refresh").json()
    assert body["rate"] == 62.5
    assert body["status"] == "ready"
    assert client.get("/quotation").json()["exchange_rate"] == 62.5


def test_saved_quotations_crud(client):
    assert client.post("/quotations", json={}).status_code == 400

    client.post("/quotation/selection/1")
    r = client.post("/quotations", json={"client_email": "ana@example.com", "notes": "urgente"})
    assert r.status_code == 201
    saved = r.json()
    assert saved["status"] == "draft"
    assert saved["total_local"] == 100

    listed = client.get("/quotations", params={"q": "ana"}).json()
    assert [q["id"] for q in listed] == [saved["id"]]
    assert client.get("/quotations", params={"status": "nope"}).status_code == 400

    r = client.patch(f"/quotations/{saved['id']}/status", json={"status": "finalized"})
    assert r.json()["status"] == "finalized"
    assert client.patch(f"/quotations/{saved['id']}/status", json={"status": "x"}).status_code == 400

    client.delete("/quotation/selection")
    r = client.post(f"/quotations/{saved['id']}/load")
    assert r.json()["selected_module_ids"] == [1]

    assert client.delete(f"/quotations/{saved['id']}").json()["status"] == "ok"
    assert client.get(f"/quotations/{saved['id']}").status_code == 404
    assert client.post(f"/quotations/{saved['id']}/load").status_code == 404


def test_api_key_is_enforced_when_configured(client, monkeypatch):
    from src.server.settings.config import settings

    monkeypatch.setattr(settings, "api_key", "secreto")
    assert client.get("/quotations").status_code == 401
    assert client.get("/quotations", headers={"X-WEBNOVA-API-KEY": "secreto"}).status_code == 200
    # arbetsminnet är inte skyddat
    assert client.get("/quotation").status_code == 200


def test_advisor_query_and_accept(client, fake_openai):
    fake_openai.completions.replies["m1"] = completion(
        "**Análisis**\n[MODULO_SUGERIDO]\nnombre: \"Chat\"\nprecio: \"6500\"\n[/MODULO_SUGERIDO]"
    )
    r = client.post("/advisor/query", json={"kind": "suggest-modules"})
    assert r.status_code == 200
    body = r.json()
    assert "<strong>Análisis</strong>" in body["content"]
    assert body["suggestions"] == [{"name": "Chat", "price": 6500, "description": ""}]

    r = client.post("/advisor/accept", json=body["suggestions"][0])
    assert r.status_code == 201
    assert r.json()["id"] == 3


def test_advisor_failure_returns_error_block(client, fake_openai):
    timeout = openai.APITimeoutError(request=httpx.Request("POST", "https://gateway.test"))
    fake_openai.completions.replies.update({"m1": timeout, "m2": timeout})
    r = client.post("/advisor/query", json={"kind": "freeform", "prompt": "hola"})
    assert r.status_code == 502
    assert r.json()["suggestions"] == []
    assert "advisory-error" in r.json()["content"]


def test_advisor_unknown_kind(client):
    assert client.post("/advisor/query", json={"kind": "poesia"}).status_code == 422


def test_advisor_uses_knowledge_base_and_logs_queries(client, fake_openai):
    r = client.post("/advisor/knowledge", json={"category": "Mercado", "topic": "ITBIS", "content": "18% sobre servicios"})
    assert r.status_code == 201
    r = client.post("/advisor/prices", json={"service_type": "Tienda online", "price_min_dop": 80000,
                                             "price_max_dop": 250000, "is_verified": True})
    assert r.status_code == 201

    fake_openai.completions.replies["m1"] = completion("Rango: **RD$80,000**")
    r = client.post("/advisor/query", json={"kind": "price-research", "prompt": "¿Cuánto cobrar?"})
    assert r.status_code == 200
    log_id = r.json()["log_id"]

    system = fake_openai.completions.calls[0]["messages"][0]["content"]
    assert "[Mercado/ITBIS]: 18% sobre servicios" in system
    assert "Tienda online: RD$80,000-250,000" in system
    assert "Landing Page" in system

    logs = client.get("/advisor/logs").json()
    assert [(e["id"], e["query_type"], e["model"]) for e in logs] == [(log_id, "price-research", "m1")]
    assert logs[0]["context_used"]["knowledgeCount"] == 1

    r = client.patch(f"/advisor/logs/{log_id}", json={"was_helpful": False, "feedback": "muy caro"})
    assert r.json()["was_helpful"] is False
    assert client.patch("/advisor/logs/999", json={}).status_code == 404


def test_failed_advisor_query_is_not_logged(client, fake_openai):
    fake_openai.completions.replies.update({"m1": completion(""), "m2": completion("")})
    assert client.post("/advisor/query", json={"kind": "analyze"}).status_code == 502
    assert client.get("/advisor/logs").json() == []
