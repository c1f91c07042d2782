from types import SimpleNamespace

import pytest
from openai import OpenAIError
from sqlalchemy.future import select

from models.rag import RagChunk, RagDocument
from services.rag import RagIngestError, chunk_text, delete_document, ingest_text, list_documents


class FakeEmbeddings:
    def __init__(self, fail_on_call=None):
        self.calls = 0
        self.fail_on_call = fail_on_call

    def create(self, model, input):
        self.calls += 1
        if self.fail_on_call is not None and self.calls == self.fail_on_call:
            raise OpenAIError("embedding backend unavailable")
        return SimpleNamespace(data=[SimpleNamespace(embedding=[float(len(input)), 0.5])])


class FakeClient:
    def __init__(self, fail_on_call=None):
        self.embeddings = FakeEmbeddings(fail_on_call)


def _letters(count):
    return "".join(chr(97 + index % 26) for index in range(count))


def test_chunks_respect_target_and_overlap():
    text = _letters(3000)
    chunks = chunk_text(text, target=1200, overlap=150)

    assert [len(chunk) for chunk in chunks] == [1200, 1200, 900]
    assert chunks[1][:150] == chunks[0][-150:]
    assert chunks[2][:150] == chunks[1][-150:]
    assert chunks[-1].endswith(text[-10:])


def test_chunks_cut_after_late_sentence_end():
    text = "A" * 400 + ". " + "B" * 1000
    chunks = chunk_text(text, target=1200, overlap=150)

    assert chunks[0] == "A" * 400 + "."
    assert chunks[1].startswith("A" * 149 + ".")
    assert chunks[1].endswith("B" * 1000)


def test_early_sentence_end_does_not_shorten_chunk():
    text = "A" * 100 + "." + "B" * 1500
    chunks = chunk_text(text, target=1200, overlap=0)
    assert len(chunks[0]) == 1200
    assert "".join(chunks) == text


def test_chunking_edge_cases():
    assert chunk_text("", target=1200, overlap=150) == []
    assert chunk_text("   \t  ", target=10, overlap=2) == []
    assert chunk_text("abcdef", target=2, overlap=5) == ["ab", "bc", "cd", "de", "ef"]
    assert chunk_text("tab\there\u00a0nbsp", target=100, overlap=0) == ["tab here nbsp"]


@pytest.mark.asyncio
async def test_ingest_stores_embedded_chunks(db_session):
    client = FakeClient()
    result = await ingest_text(
        db_session,
        title="Gümrük Kanunu",
        text=_letters(2500),
        chunk_size=1000,
        overlap=100,
        client=client,
    )

    assert result["ok"] is True
    assert result["chunks"] == 3
    assert client.embeddings.calls == 3

    chunks = (
        await db_session.execute(select(RagChunk).where(RagChunk.document_id == result["document_id"]).order_by(RagChunk.idx))
    ).scalars().all()
    assert [chunk.idx for chunk in chunks] == [0, 1, 2]
    assert chunks[0].embedding == [1000.0, 0.5]
    assert chunks[0].token_count == 250

    documents = await list_documents(db_session)
    assert documents[0]["chunks"] == 3
    assert documents[0]["title"] == "Gümrük Kanunu"


@pytest.mark.asyncio
async def test_ingest_failure_keeps_already_stored_chunks(db_session):
    client = FakeClient(fail_on_call=3)
    with pytest.raises(RagIngestError) as exc_info:
        await ingest_text(db_session, title="Partial", text=_letters(4000), chunk_size=1000, overlap=0, client=client)

    error = exc_info.value
    assert error.reason == "embedding_failed"
    assert error.inserted == 2

    stored = (await db_session.execute(select(RagChunk).where(RagChunk.document_id == error.document_id))).scalars().all()
    assert len(stored) == 2

    assert await delete_document(db_session, error.document_id) is True
    assert (await db_session.execute(select(RagDocument))).scalars().all() == []
    assert (await db_session.execute(select(RagChunk))).scalars().all() == []


@pytest.mark.asyncio
async def test_ingest_without_openai_key_stores_chunks_without_embeddings(db_session):
    result = await ingest_text(db_session, title=None, text="Short note about transit regime.")
    chunk = (await db_session.execute(select(RagChunk).where(RagChunk.document_id == result["document_id"]))).scalar_one()
    assert chunk.embedding is None
    assert chunk.metadata_json["embedding_model"] is None
