from datetime import timedelta

from bson import ObjectId

from db.collections import get_user_collection
from utils.clock import utcnow


def add_book(client, admin_headers, uploads_dir, title="Pakistan Penal Code", category="Acts & Rules"):
    (uploads_dir / "books").mkdir(exist_ok=True)
    (uploads_dir / "books" / "ppc.pdf").write_bytes(b"%PDF-1.4 " + b"0" * 2048)
    response = client.post(
        "/api/books",
        json={"title": title, "description": "Annotated code", "category": category, "pdfFile": "books/ppc.pdf"},
        headers=admin_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def expire_trial(client, run_sync, user_id):
    past = utcnow() - timedelta(days=1)
    run_sync(get_user_collection(client.db).update_one(
        {"_id": ObjectId(user_id)},
        {"$set": {"trial_end_date": past, "trial_start_date": past - timedelta(days=7)}},
    ))


def test_book_downloads_are_counted_and_capped_for_trials(client, register, admin_headers, uploads_dir):
    book = add_book(client, admin_headers, uploads_dir)
    headers, _ = register()

    for _ in range(2):
        response = client.get(f"/api/books/{book['id']}/download", headers=headers)
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"

    denied = client.get(f"/api/books/{book['id']}/download", headers=headers)

    assert denied.status_code == 403
    assert denied.json()["detail"]["limitType"] == "book_downloads"
    assert client.get(f"/api/books/{book['id']}").json()["downloads"] == 2


def test_book_catalogue_is_public_and_filterable(client, admin_headers, uploads_dir):
    add_book(client, admin_headers, uploads_dir)
    add_book(client, admin_headers, uploads_dir, title="Landmark Judgements", category="Case Laws / Judgements")

    assert len(client.get("/api/books").json()) == 2
    acts = client.get("/api/books", params={"category": "Acts & Rules"}).json()
    assert [b["title"] for b in acts] == ["Pakistan Penal Code"]
    assert client.get("/api/books", params={"search": "landmark"}).json()[0]["category"] == "Case Laws / Judgements"

    stats = {row["category"]: row["count"] for row in client.get("/api/books/stats/by-category").json()}
    assert stats == {"Acts & Rules": 1, "Case Laws / Judgements": 1}


def test_book_management_requires_admin(client, register):
    headers, _ = register()
    response = client.post(
        "/api/books",
        json={"title": "x", "description": "y", "category": "Books", "pdfFile": "books/x.pdf"},
        headers=headers,
    )
    assert response.status_code == 403


def test_full_post_requires_active_access(client, register, admin_headers, run_sync):
    post = client.post(
        "/api/posts",
        json={"title": "Bail reforms 2025", "description": "Summary", "fullContent": "Full analysis", "type": "featured"},
        headers=admin_headers,
    )
    assert post.status_code == 201, post.text
    post_id = post.json()["id"]
    headers, user = register()

    assert client.get(f"/api/posts/{post_id}", headers=headers).json()["fullContent"] == "Full analysis"

    expire_trial(client, run_sync, user["id"])
    blocked = client.get(f"/api/posts/{post_id}", headers=headers)

    assert blocked.status_code == 403
    assert blocked.json()["detail"]["reason"] == "subscription_required"


def test_blog_data_groups_posts(client, admin_headers):
    for kind in ("picked", "latest", "featured"):
        client.post("/api/posts", json={"title": f"{kind} post", "type": kind, "category": "Family"},
                    headers=admin_headers)

    data = client.get("/api/blog-data").json()

    assert [p["title"] for p in data["pickedCards"]] == ["picked post"]
    assert [p["title"] for p in data["featuredPosts"]] == ["featured post"]
    assert "Family" in data["categories"]


def test_standalone_notes_share_the_note_quota(client, register):
    headers, _ = register()
    for title in ("Hearing prep", "Client call"):
        assert client.post("/api/standalone/notes", json={"title": title, "content": "details"},
                           headers=headers).status_code == 201

    denied = client.post("/api/standalone/notes", json={"title": "Third", "content": "x"}, headers=headers)
    assert denied.status_code == 403
    assert denied.json()["detail"]["limitType"] == "notes"

    found = client.get("/api/standalone/notes/search/hearing", headers=headers).json()
    assert [n["title"] for n in found] == ["Hearing prep"]


def test_expired_trial_cannot_create_notes(client, register, run_sync):
    headers, user = register()
    expire_trial(client, run_sync, user["id"])

    response = client.post("/api/standalone/notes", json={"title": "t", "content": "c"}, headers=headers)

    assert response.status_code == 403
    assert response.json()["detail"]["reason"] == "subscription_required"
