from urllib.parse import parse_qs, urlparse

import pytest

from models.worker_cv import CvBlockType
from services.storage import create_signed_url, put_object


PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.mark.asyncio
async def test_photo_url_is_null_without_photo(api):
    await api.add_profile("worker-1", role="worker")
    response = await api.client.get("/worker/cv/photo/url", headers=api.headers("worker-1"))
    assert response.status_code == 200
    assert response.json() == {"ok": True, "url": None, "reason": "no_photo"}


@pytest.mark.asyncio
async def test_photo_upload_and_signed_download(api):
    await api.add_profile("worker-1", role="worker")
    headers = api.headers("worker-1")

    upload = await api.client.post(
        "/worker/cv/photo",
        headers=headers,
        files={"file": ("me.PNG", PNG_BYTES, "image/png")},
    )
    assert upload.status_code == 200
    assert upload.json()["path"] == "worker-1/profile.png"

    signed = await api.client.get("/worker/cv/photo/url", headers=headers)
    body = signed.json()
    assert body["path"] == "worker-1/profile.png"
    assert body["expires_in"] > 0

    download = await api.client.get(body["url"])
    assert download.status_code == 200
    assert download.content == PNG_BYTES

    token = parse_qs(urlparse(body["url"]).query)["token"][0]
    wrong_object = await api.client.get(f"/storage/workers-cv/worker-2/profile.png?token={token}")
    assert wrong_object.status_code == 403
    assert wrong_object.json()["detail"] == "token_object_mismatch"


@pytest.mark.asyncio
async def test_photo_falls_back_to_listed_object(api):
    await api.add_profile("worker-1", role="worker")
    put_object("workers-cv", "worker-1/photo.jpg", b"jpeg-bytes")

    response = await api.client.get("/worker/cv/photo/url", headers=api.headers("worker-1"))
    assert response.json()["path"] == "worker-1/photo.jpg"


@pytest.mark.asyncio
async def test_photo_upload_rejects_unknown_type(api):
    await api.add_profile("worker-1", role="worker")
    response = await api.client.post(
        "/worker/cv/photo",
        headers=api.headers("worker-1"),
        files={"file": ("cv.pdf", b"%PDF-1.7", "application/pdf")},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "unsupported_image_type"


@pytest.mark.asyncio
async def test_storage_rejects_bad_tokens_and_traversal(api):
    put_object("workers-cv", "worker-1/profile.png", PNG_BYTES)

    forged = await api.client.get("/storage/workers-cv/worker-1/profile.png?token=not-a-real-token")
    assert forged.status_code == 401

    signed = create_signed_url("workers-cv", "worker-1/profile.png")
    token = parse_qs(urlparse(signed["url"]).query)["token"][0]
    unknown_bucket = await api.client.get(f"/storage/secrets/worker-1/profile.png?token={token}")
    assert unknown_bucket.status_code in (403, 404)


@pytest.mark.asyncio
async def test_cv_profile_blocks_and_public_preview(api):
    await api.add_profile("worker-1", role="worker")
    await api.add_profile("customer-1")
    headers = api.headers("worker-1")

    saved = await api.client.put(
        "/worker/cv/profile",
        headers=headers,
        json={"display_name": "Ayşe Yılmaz", "title": "Gümrük Müşaviri", "languages": ["tr", " en ", ""], "hourly_rate": 1500},
    )
    assert saved.status_code == 200
    assert saved.json()["profile"]["languages"] == ["tr", "en"]
    assert saved.json()["profile"]["hourly_rate"] == 1500

    updated = await api.client.put("/worker/cv/profile", headers=headers, json={"bio": "15 yıllık deneyim"})
    assert updated.json()["profile"]["display_name"] == "Ayşe Yılmaz"
    assert updated.json()["profile"]["bio"] == "15 yıllık deneyim"

    second = await api.client.post(
        "/worker/cv/blocks", headers=headers, json={"block_type": "education", "title": "Hukuk", "order_index": 2}
    )
    first = await api.client.post(
        "/worker/cv/blocks", headers=headers, json={"block_type": "experience", "title": "Gümrük İdaresi", "order_index": 1}
    )
    assert first.status_code == 200

    async with api.session_maker() as session:
        session.add(CvBlockType(key="experience", label_tr="Deneyim", label_en="Experience", active=True))
        await session.commit()
    rejected = await api.client.post("/worker/cv/blocks", headers=headers, json={"block_type": "hobbies"})
    assert rejected.status_code == 400
    assert rejected.json()["detail"] == "unknown_block_type"

    await api.add_profile("worker-2", role="worker")
    foreign_edit = await api.client.patch(
        f"/worker/cv/blocks/{second.json()['block']['id']}", headers=api.headers("worker-2"), json={"title": "x"}
    )
    assert foreign_edit.status_code in (403, 404)

    preview = await api.client.get("/cv/preview/worker-1")
    assert preview.status_code == 200
    assert preview.json()["profile"]["title"] == "Gümrük Müşaviri"
    assert [block["title"] for block in preview.json()["blocks"]] == ["Gümrük İdaresi", "Hukuk"]
    assert preview.json()["photo_url"] is None

    not_consultant = await api.client.get("/cv/preview/customer-1")
    assert not_consultant.status_code == 404
    assert not_consultant.json()["detail"] == "consultant_not_found"
