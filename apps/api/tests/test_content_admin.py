import pytest

from services.content import slugify


def test_slugify_folds_turkish_letters():
    assert slugify("Gümrük Rejimleri 2024") == "gumruk-rejimleri-2024"
    assert slugify("İthalat ŞARTLARI: çözüm?") == "ithalat-sartlari-cozum"
    assert slugify("!!!") == "post"
    assert len(slugify("a" * 200)) == 80


@pytest.mark.asyncio
async def test_blog_draft_review_and_publish(api):
    await api.add_profile("author-1")
    await api.add_profile("author-2")
    await api.add_profile("admin-1", role="admin")
    author = api.headers("author-1")

    first = await api.client.post(
        "/blog/drafts",
        headers=author,
        json={"title": "Gümrük Rejimleri", "content": "<p>Dahilde işleme</p>", "tags": ["Rejim", "rejim ", "DIR"]},
    )
    assert first.status_code == 200
    post = first.json()["post"]
    assert post["slug"] == "gumruk-rejimleri"
    assert post["status"] == "draft"
    assert post["tags"] == ["rejim", "dir"]

    second = await api.client.post("/blog/drafts", headers=author, json={"title": "Gümrük Rejimleri"})
    assert second.json()["post"]["slug"] == "gumruk-rejimleri-2"

    foreign = await api.client.patch(
        f"/blog/drafts/{post['id']}", headers=api.headers("author-2"), json={"summary": "x"}
    )
    assert foreign.status_code == 403

    submitted = await api.client.post(f"/blog/drafts/{post['id']}/submit", headers=author)
    assert submitted.json()["post"]["status"] == "in_review"

    review = await api.client.get("/admin/blog", headers=api.headers("admin-1"))
    assert [item["id"] for item in review.json()["posts"]] == [post["id"]]

    published = await api.client.post(f"/admin/blog/{post['id']}/publish", headers=api.headers("admin-1"))
    assert published.status_code == 200
    assert published.json()["post"]["status"] == "published"
    assert published.json()["post"]["published_at"]

    locked = await api.client.patch(f"/blog/drafts/{post['id']}", headers=author, json={"summary": "late edit"})
    assert locked.status_code == 409
    assert locked.json()["detail"] == "post_already_published"

    public = await api.client.get("/blog/gumruk-rejimleri")
    assert public.status_code == 200
    assert public.json()["post"]["content"] == "<p>Dahilde işleme</p>"

    hidden = await api.client.get("/blog/gumruk-rejimleri-2")
    assert hidden.status_code == 404


@pytest.mark.asyncio
async def test_blog_draft_requires_title(api):
    await api.add_profile("author-1")
    response = await api.client.post("/blog/drafts", headers=api.headers("author-1"), json={"summary": "no title"})
    assert response.status_code == 400
    assert response.json()["detail"] == "title_required"


@pytest.mark.asyncio
async def test_subscription_settings_replace_tiers_with_warnings(api):
    await api.add_profile("admin-1", role="admin")
    headers = api.headers("admin-1")

    saved = await api.client.post(
        "/admin/subscription-settings",
        headers=headers,
        json={
            "settings": {"credit_price_lira": "12.5", "min_user_purchase_credits": 20, "notify_emails": " "},
            "tiers_user": [
                {"min": 0, "max": 100, "unit_price_lira": 10},
                {"min": 150, "max": None, "unit_price_lira": 8},
            ],
        },
    )
    assert saved.status_code == 200
    assert saved.json()["warnings"] == ["user:gap:[0,100):[150,)"]
    assert saved.json()["settings"]["credit_price_lira"] == 12.5
    assert saved.json()["settings"]["notify_emails"] is None

    loaded = await api.client.get("/admin/subscription-settings", headers=headers)
    body = loaded.json()
    assert body["settings"]["min_user_purchase_credits"] == 20
    tiers = sorted(body["tiers_user"], key=lambda tier: tier["min"])
    assert [(tier["min"], tier["max"], tier["unit_price_lira"]) for tier in tiers] == [(0, 100, 10), (150, None, 8)]
    assert body["tiers_org"] == []

    rejected = await api.client.post(
        "/admin/subscription-settings",
        headers=headers,
        json={"tiers_org": [{"min": 50, "max": 10, "unit_price_lira": 5}]},
    )
    assert rejected.status_code == 400
    assert rejected.json()["detail"].startswith("invalid_tier_range")


@pytest.mark.asyncio
async def test_admin_sets_roles_and_exports_users(api):
    await api.add_profile("admin-1", role="admin")
    await api.add_profile("customer-1", email="customer@example.com")
    headers = api.headers("admin-1")

    promoted = await api.client.post(
        "/admin/users/set-role", headers=headers, json={"user_id": "customer-1", "role": "worker"}
    )
    assert promoted.status_code == 200
    assert promoted.json()["user"]["role"] == "worker"

    invalid = await api.client.post(
        "/admin/users/set-role", headers=headers, json={"user_id": "customer-1", "role": "owner"}
    )
    assert invalid.status_code == 400
    assert invalid.json()["detail"] == "invalid_role"

    missing = await api.client.post(
        "/admin/users/set-role", headers=headers, json={"user_id": "nobody", "role": "user"}
    )
    assert missing.status_code == 404

    export = await api.client.get("/admin/users/export", headers=headers)
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/csv")
    lines = export.text.splitlines()
    assert lines[0] == "id,email,full_name,role,tenant_key,phone,created_at"
    assert any(line.startswith("customer-1,customer@example.com,Customer 1,worker,tr,") for line in lines[1:])
