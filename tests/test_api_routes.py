"""
Tests for the JSON API (orcamento/api/routes.py) through the Flask test client.
"""
import json
import os
import re
from unittest.mock import patch

import pytest


@pytest.fixture
def created(client, sample_payload):
    """A stored quote, as returned by POST /api/quotes."""
    r = client.post("/api/quotes", json=sample_payload)
    assert r.status_code == 200
    return r.get_json()


def _corrupt_services(app):
    """Overwrite the first stored quote's services with undecodable JSON."""
    path = app.config["STORAGE"]._path("quotes")
    with open(path, encoding="utf-8") as f:
        doc = json.load(f)
    doc["quotes"][0]["services"] = "{broken"
    with open(path, "w", encoding="utf-8") as f:
        json.dump(doc, f)


# ═══════════════════════════════════════════════════════════════════════════════
# Health / defaults
# ═══════════════════════════════════════════════════════════════════════════════

class TestHealth:

    def test_health(self, anon_client):
        r = anon_client.get("/api/health")
        assert r.get_json() == {"ok": True, "storage": "file"}


class TestDefaults:

    def test_blank_form(self, client):
        data = client.get("/api/quotes/defaults").get_json()
        assert re.fullmatch(r"\d{9}", data["serviceOrder"])
        assert re.fullmatch(r"\d{2}/\d{2}/\d{4}", data["date"])
        assert data["technicianName"] == "ALEXANDRE FREITAS"
        assert data["companyWhatsapp"] == "(19) 99308-8395"
        assert data["equipmentAccessories"] == "Nenhum"
        assert data["equipmentPassword"] == "Nenhum"
        assert data["diagnostics"] == [""]

    def test_env_overrides_defaults(self, client, temp_data_dir, output_dir, monkeypatch):
        monkeypatch.setenv("ORCAMENTO_TECHNICIAN", "BEATRIZ LIMA")
        from app import create_app
        from orcamento.core.storage import MemoryStorage
        app = create_app({"TESTING": True, "STORAGE": MemoryStorage()})
        with app.test_client() as c:
            data = c.get("/api/quotes/defaults", headers=client._headers).get_json()
        assert data["technicianName"] == "BEATRIZ LIMA"


# ═══════════════════════════════════════════════════════════════════════════════
# Quotes CRUD
# ═══════════════════════════════════════════════════════════════════════════════

class TestQuotesCrud:

    def test_create(self, created):
        assert created["id"] == 1
        assert created["total"] == "225.50"
        assert json.loads(created["services"])[0]["price"] == 150.0

    def test_create_invalid(self, client, sample_payload):
        sample_payload["services"] = []
        r = client.post("/api/quotes", json=sample_payload)
        assert r.status_code == 400
        assert "Pelo menos um serviço é obrigatório" in r.get_json()["message"]

    def test_create_not_json(self, client):
        r = client.post("/api/quotes", data="oops", content_type="text/plain")
        assert r.status_code == 400
        assert r.get_json()["message"] == "Corpo da requisição deve ser um objeto JSON"

    def test_list(self, client, created):
        data = client.get("/api/quotes").get_json()
        assert [q["id"] for q in data] == [created["id"]]

    def test_get(self, client, created):
        assert client.get(f"/api/quotes/{created['id']}").get_json()["clientName"] == "Maria da Silva"

    def test_get_missing(self, client):
        r = client.get("/api/quotes/99")
        assert r.status_code == 404
        assert r.get_json() == {"message": "Orçamento não encontrado"}

    def test_update(self, client, created):
        r = client.put(f"/api/quotes/{created['id']}",
                       json={"services": [{"name": "Formatação", "price": 80}]})
        assert r.status_code == 200
        assert r.get_json()["total"] == "80.00"
        assert r.get_json()["clientName"] == "Maria da Silva"

    def test_update_invalid(self, client, created):
        r = client.put(f"/api/quotes/{created['id']}", json={"clientName": ""})
        assert r.status_code == 400
        assert r.get_json()["message"] == "Nome do cliente é obrigatório"

    def test_update_missing(self, client):
        assert client.put("/api/quotes/99", json={"clientName": "x"}).status_code == 404

    def test_delete(self, client, created):
        r = client.delete(f"/api/quotes/{created['id']}")
        assert r.get_json() == {"message": "Orçamento excluído com sucesso"}
        assert client.get(f"/api/quotes/{created['id']}").status_code == 404
        assert client.delete(f"/api/quotes/{created['id']}").status_code == 404


# ═══════════════════════════════════════════════════════════════════════════════
# PDF / WhatsApp
# ═══════════════════════════════════════════════════════════════════════════════

class TestQuotePdf:

    def test_download(self, client, created, pdf_text):
        r = client.get(f"/api/quotes/{created['id']}/pdf")
        assert r.status_code == 200
        assert r.mimetype == "application/pdf"
        assert "Orcamento_00001_Maria_da_Silva.pdf" in r.headers["Content-Disposition"]
        assert "R$ 225,50" in pdf_text(r.data)

    def test_download_missing(self, client):
        assert client.get("/api/quotes/99/pdf").status_code == 404

    def test_preview_from_payload(self, client, sample_payload, pdf_text):
        r = client.post("/api/quotes/pdf", json=sample_payload)
        assert r.status_code == 200
        assert "Maria da Silva" in pdf_text(r.data)
        assert client.get("/api/quotes").get_json() == []

    def test_preview_invalid(self, client, sample_payload):
        sample_payload["diagnostics"] = []
        r = client.post("/api/quotes/pdf", json=sample_payload)
        assert r.status_code == 400

    def test_render_failure_is_500(self, client, created):
        with patch("orcamento.api.routes.build_quote_pdf", side_effect=RuntimeError("disk full")):
            r = client.get(f"/api/quotes/{created['id']}/pdf")
        assert r.status_code == 500
        assert r.get_json() == {"message": "Erro ao gerar PDF. Tente novamente."}

    def test_same_os_and_client_do_not_share_output(self, client, sample_payload, pdf_text):
        other = dict(sample_payload, services=[{"name": "Formatação", "price": 80}])
        first = client.post("/api/quotes/pdf", json=sample_payload)
        second = client.post("/api/quotes/pdf", json=other)
        assert first.headers["Content-Disposition"] == second.headers["Content-Disposition"]
        first_text, second_text = pdf_text(first.data), pdf_text(second.data)
        assert "R$ 225,50" in first_text
        assert "R$ 80,00" not in first_text
        assert "R$ 80,00" in second_text
        assert "R$ 225,50" not in second_text

    def test_download_leaves_no_file(self, client, created, sample_payload, output_dir):
        assert client.get(f"/api/quotes/{created['id']}/pdf").status_code == 200
        assert client.post("/api/quotes/pdf", json=sample_payload).status_code == 200
        assert os.listdir(output_dir) == []

    def test_corrupt_stored_services_is_500(self, client, created, app):
        _corrupt_services(app)
        r = client.get(f"/api/quotes/{created['id']}/pdf")
        assert r.status_code == 500


class TestWhatsapp:

    def test_link(self, client, created):
        r = client.get(f"/api/quotes/{created['id']}/whatsapp")
        assert r.get_json()["url"].startswith("https://wa.me/5519993088395?text=")

    def test_missing(self, client):
        assert client.get("/api/quotes/99/whatsapp").status_code == 404

    def test_corrupt_stored_services_is_500(self, client, created, app):
        _corrupt_services(app)
        r = client.get(f"/api/quotes/{created['id']}/whatsapp")
        assert r.status_code == 500
        assert r.get_json() == {"message": "Erro ao gerar link. Tente novamente."}


# ═══════════════════════════════════════════════════════════════════════════════
# Saved templates
# ═══════════════════════════════════════════════════════════════════════════════

class TestSavedQuotes:

    def test_create_and_list(self, client, sample_payload):
        r = client.post("/api/saved-quotes", json=dict(sample_payload, name="Limpeza padrão"))
        assert r.status_code == 200
        assert r.get_json()["name"] == "Limpeza padrão"
        assert [t["name"] for t in client.get("/api/saved-quotes").get_json()] == ["Limpeza padrão"]

    def test_name_required(self, client, sample_payload):
        r = client.post("/api/saved-quotes", json=sample_payload)
        assert r.status_code == 400
        assert r.get_json()["message"] == "Nome do template é obrigatório"

    def test_delete(self, client, sample_payload):
        tid = client.post("/api/saved-quotes", json=dict(sample_payload, name="t")).get_json()["id"]
        r = client.delete(f"/api/saved-quotes/{tid}")
        assert r.get_json() == {"message": "Template excluído com sucesso"}
        r = client.delete(f"/api/saved-quotes/{tid}")
        assert r.status_code == 404
        assert r.get_json() == {"message": "Template não encontrado"}
