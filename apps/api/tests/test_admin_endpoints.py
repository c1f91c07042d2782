import httpx
import pytest

from config import settings
from services import fx
from services.rag import RagIngestError


TCMB_USD_ONLY = """<?xml version="1.0" encoding="UTF-8"?>
<Tarih_Date Tarih="17.10.2026" Date="10/17/2026" Bulten_No="2026/198">
  <Currency CrossOrder="0" Kod="USD" CurrencyCode="USD">
    <Unit>1</Unit>
    <ForexSelling>41,8563</ForexSelling>
  </Currency>
</Tarih_Date>
"""


class FakeTcmbClient:
    """Stands in for httpx.AsyncClient; `outcome` is the XML text or an exception to raise."""

    def __init__(self, outcome):
        self.outcome = outcome
        self.requested = []

    def __call__(self, *args, **kwargs):
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def get(self, url, headers=None):
        self.requested.append(url)
        request = httpx.Request("GET", url)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return httpx.Response(200, text=self.outcome, request=request)


# FX

@pytest.mark.asyncio
async def test_tcmb_rate_reads_bulletin(api, monkeypatch):
    client = FakeTcmbClient(TCMB_USD_ONLY)
    monkeypatch.setattr(fx.httpx, "AsyncClient", client)

    response = await api.client.get("/fx/tcmb", params={"base": "usd"})
    assert response.status_code == 200
    assert response.json() == {
        "ok": True,
        "base": "USD",
        "quote": "TRY",
        "rate": 41.8563,
        "asof": "10/17/2026",
        "source": "tcmb",
    }
    assert client.requested == [settings.TCMB_TODAY_URL]


@pytest.mark.asyncio
async def test_tcmb_rate_for_lira_skips_fetch(api, monkeypatch):
    client = FakeTcmbClient(httpx.ConnectError("unreachable"))
    monkeypatch.setattr(fx.httpx, "AsyncClient", client)

    response = await api.client.get("/fx/tcmb", params={"base": "TRY"})
    assert response.status_code == 200
    assert response.json()["rate"] == 1
    assert response.json()["source"] == "identity"
    assert client.requested == []


@pytest.mark.asyncio
async def test_tcmb_fetch_failure_is_bad_gateway(api, monkeypatch):
    monkeypatch.setattr(fx.httpx, "AsyncClient", FakeTcmbClient(httpx.ConnectError("unreachable")))

    response = await api.client.get("/fx/tcmb", params={"base": "USD"})
    assert response.status_code == 502
    assert response.json()["detail"] == "tcmb_fetch_failed"


@pytest.mark.asyncio
async def test_tcmb_unknown_currency_is_not_found(api, monkeypatch):
    monkeypatch.setattr(fx.httpx, "AsyncClient", FakeTcmbClient(TCMB_USD_ONLY))

    response = await api.client.get("/fx/tcmb", params={"base": "gbp"})
    assert response.status_code == 404
    assert response.json()["detail"] == "currency_block_not_found:GBP"


# SLA reminder rules

@pytest.mark.asyncio
async def test_sla_rule_lifecycle(api):
    await api.add_profile("admin-1", role="admin")
    headers = api.headers("admin-1")

    created = await api.client.post(
        "/admin/sla-rules", headers=headers, json={"name": "Two hours out", "minutes_before_sla": 120}
    )
    assert created.status_code == 200
    rule = created.json()["rule"]
    assert rule["minutes_before_sla"] == 120
    assert rule["is_active"] is True

    paused = await api.client.patch(
        "/admin/sla-rules", headers=headers, json={"id": rule["id"], "is_active": False}
    )
    assert paused.status_code == 200
    assert paused.json()["rule"]["is_active"] is False

    listed = await api.client.get("/admin/sla-rules", headers=headers)
    assert [(item["id"], item["is_active"]) for item in listed.json()["rules"]] == [(rule["id"], False)]

    deleted = await api.client.delete("/admin/sla-rules", headers=headers, params={"id": rule["id"]})
    assert deleted.status_code == 200
    assert deleted.json() == {"ok": True}

    listed = await api.client.get("/admin/sla-rules", headers=headers)
    assert listed.json()["rules"] == []

    gone = await api.client.delete("/admin/sla-rules", headers=headers, params={"id": rule["id"]})
    assert gone.status_code == 404
    assert gone.json()["detail"] == "rule_not_found"


@pytest.mark.asyncio
async def test_sla_rule_validation(api):
    await api.add_profile("admin-1", role="admin")
    headers = api.headers("admin-1")

    for minutes in (0, -15, "soon"):
        response = await api.client.post(
            "/admin/sla-rules", headers=headers, json={"name": "Bad", "minutes_before_sla": minutes}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "minutes_before_sla_invalid"

    unnamed = await api.client.post("/admin/sla-rules", headers=headers, json={"minutes_before_sla": 30})
    assert unnamed.status_code == 400
    assert unnamed.json()["detail"] == "name_required"

    no_id = await api.client.patch("/admin/sla-rules", headers=headers, json={"is_active": False})
    assert no_id.status_code == 400
    assert no_id.json()["detail"] == "id_required"

    no_fields = await api.client.patch("/admin/sla-rules", headers=headers, json={"id": "rule-1"})
    assert no_fields.status_code == 400
    assert no_fields.json()["detail"] == "no_fields"

    unknown = await api.client.patch("/admin/sla-rules", headers=headers, json={"id": "rule-1", "name": "x"})
    assert unknown.status_code == 404

    delete_without_id = await api.client.delete("/admin/sla-rules", headers=headers)
    assert delete_without_id.status_code == 400
    assert delete_without_id.json()["detail"] == "id_required"


@pytest.mark.asyncio
async def test_sla_rules_require_admin(api):
    await api.add_profile("customer-1")
    response = await api.client.get("/admin/sla-rules", headers=api.headers("customer-1"))
    assert response.status_code in (401, 403)


# Knowledge base ingestion

@pytest.mark.asyncio
async def test_rag_ingest_stores_text_and_rejects_blank(api, monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "")
    await api.add_profile("admin-1", role="admin")
    headers = api.headers("admin-1")

    blank = await api.client.post("/admin/rag/ingest", headers=headers, json={"title": "Empty", "text": "   "})
    assert blank.status_code == 400
    assert blank.json()["detail"] == "text_required"

    stored = await api.client.post(
        "/admin/rag/ingest",
        headers=headers,
        json={"title": "Antrepo", "text": "Antrepo rejimi eşyanın gümrük gözetimi altında depolanmasıdır."},
    )
    assert stored.status_code == 200
    assert stored.json()["ok"] is True
    assert stored.json()["chunks"] >= 1

    docs = await api.client.get("/admin/rag/docs", headers=headers)
    assert [doc["id"] for doc in docs.json()["documents"]] == [stored.json()["document_id"]]


@pytest.mark.asyncio
async def test_rag_ingest_failure_reports_partial_progress(api, monkeypatch):
    async def failing_ingest(db, **kwargs):
        raise RagIngestError("embedding_failed", "doc-1", 2)

    monkeypatch.setattr("routers.admin_content.ingest_text", failing_ingest)
    await api.add_profile("admin-1", role="admin")

    response = await api.client.post(
        "/admin/rag/ingest", headers=api.headers("admin-1"), json={"text": "Tarife pozisyonu"}
    )
    assert response.status_code == 502
    assert response.json()["detail"] == {"error": "embedding_failed", "document_id": "doc-1", "inserted": 2}


@pytest.mark.asyncio
async def test_rag_upload_validates_files(api, monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "")
    await api.add_profile("admin-1", role="admin")
    headers = api.headers("admin-1")

    not_utf8 = await api.client.post(
        "/admin/rag/upload", headers=headers, files={"file": ("notes.txt", b"\xff\xfe\xfa bozuk", "text/plain")}
    )
    assert not_utf8.status_code == 400
    assert not_utf8.json()["detail"] == "invalid_encoding"

    pdf = await api.client.post(
        "/admin/rag/upload", headers=headers, files={"file": ("rehber.pdf", b"%PDF-1.4", "application/pdf")}
    )
    assert pdf.status_code == 400
    assert pdf.json()["detail"] == "unsupported_file_type"

    empty = await api.client.post(
        "/admin/rag/upload", headers=headers, files={"file": ("bos.md", b"  \n", "text/markdown")}
    )
    assert empty.status_code == 400
    assert empty.json()["detail"] == "text_required"

    uploaded = await api.client.post(
        "/admin/rag/upload",
        headers=headers,
        files={"file": ("rejimler.md", "\ufeff# Rejimler\n\nDahilde işleme rejimi.".encode("utf-8"), "text/markdown")},
        data={"source": "upload"},
    )
    assert uploaded.status_code == 200
    assert uploaded.json()["chunks"] >= 1

    docs = await api.client.get("/admin/rag/docs", headers=headers)
    assert [doc["title"] for doc in docs.json()["documents"]] == ["rejimler.md"]
