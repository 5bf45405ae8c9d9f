# tests/test_api_store.py
"""Session login and posting ownership through the HTTP API (needs PostgreSQL)."""
import uuid

import pytest
from fastapi.testclient import TestClient

from laxbay import config, crud, storage
from laxbay.main import app
from laxbay.models import Posting, User

LISTING = {
    "title": "Brine King Gloves",
    "description": "Size M, broken in.",
    "price": 55,
    "category": "Gloves",
    "location": "Baltimore",
}


@pytest.fixture
def accounts(db):
    tag = uuid.uuid4().hex[:8]
    names = {"seller": f"seller-{tag}", "other": f"other-{tag}", "admin": f"admin-{tag}"}
    yield names
    db.rollback()
    db.query(Posting).filter(Posting.username.in_(names.values())).delete(synchronize_session=False)
    db.query(User).filter(User.username.in_(names.values())).delete(synchronize_session=False)
    db.commit()


def signed_in(db, username, role=None):
    client = TestClient(app)
    r = client.post("/api/store/register", json={
        "firstName": "Test", "lastName": "User", "email": f"{username}@example.com",
        "username": username, "password": "password123", "address": "1 Main St",
        "city": "Baltimore", "zipCode": "21201",
    })
    assert r.status_code == 201, r.text
    if role:
        user = crud.get_user_by_username(db, username)
        user.role = role
        db.commit()
    r = client.post("/api/store/login", json={"email": f"{username.upper()}@example.com", "password": "password123"})
    assert r.status_code == 200, r.text
    return client


def test_register_rejects_duplicates(db, accounts):
    signed_in(db, accounts["seller"])
    r = TestClient(app).post("/api/store/register", json={
        "firstName": "Dup", "lastName": "User", "email": f"{accounts['seller']}@example.com",
        "username": "someone-else", "password": "password123", "address": "x",
        "city": "x", "zipCode": "x",
    })
    assert r.status_code == 400


def test_wrong_password(db, accounts):
    signed_in(db, accounts["seller"])
    r = TestClient(app).post("/api/store/login", json={"email": f"{accounts['seller']}@example.com", "password": "nope"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid email or password"


def test_owner_admin_and_stranger(db, accounts):
    seller = signed_in(db, accounts["seller"])
    other = signed_in(db, accounts["other"])
    admin = signed_in(db, accounts["admin"], role="admin")

    assert seller.get("/api/store/me").json()["username"] == accounts["seller"]

    r = seller.post("/api/store/create", json=LISTING)
    assert r.status_code == 201, r.text
    post = r.json()["post"]
    assert post["category"] == "Gloves"
    pid = post["id"]

    assert TestClient(app).get(f"/api/store/listings/{pid}").json()["title"] == "Brine King Gloves"
    assert [p["id"] for p in seller.get("/api/store/user/posts").json()] == [pid]

    assert other.put(f"/api/store/posts/{pid}", json={"price": 1}).status_code == 403
    assert other.delete(f"/api/store/posts/{pid}").status_code == 403

    r = seller.put(f"/api/store/posts/{pid}", json={"price": 50})
    assert r.status_code == 200
    assert r.json()["price"] == 50
    assert r.json()["title"] == "Brine King Gloves"

    r = admin.put(f"/api/store/posts/{pid}", json={"title": "Brine King Gloves (M)"})
    assert r.status_code == 200

    assert admin.delete(f"/api/store/posts/{pid}").status_code == 204
    assert TestClient(app).get(f"/api/store/listings/{pid}").status_code == 404
    assert seller.get(f"/api/store/posts/{pid}").status_code == 404


def test_logout_clears_session(db, accounts):
    seller = signed_in(db, accounts["seller"])
    assert seller.post("/api/store/logout").status_code == 200
    assert seller.get("/api/store/me").status_code == 401


def test_seller_email_lookup(db, accounts):
    signed_in(db, accounts["seller"])
    r = TestClient(app).get(f"/api/user/email/{accounts['seller']}")
    assert r.json() == {"email": f"{accounts['seller']}@example.com"}
    assert TestClient(app).get("/api/user/email/nobody-here-xyz").status_code == 404


class BucketRecorder:
    def __init__(self):
        self.objects = {}

    def put_object(self, Bucket, Key, Body, ContentType):
        self.objects[Key] = (ContentType, Body)


@pytest.fixture
def bucket(monkeypatch):
    rec = BucketRecorder()
    monkeypatch.setattr(config, "S3_BUCKET", "laxbay-images")
    monkeypatch.setattr(config, "S3_PUBLIC_BASE_URL", "https://img.laxbay.com")
    monkeypatch.setattr(storage, "get_s3_client", lambda: rec)
    return rec


def test_multipart_create_and_edit_with_image_file(db, accounts, bucket):
    seller = signed_in(db, accounts["seller"])
    form = {k: str(v) for k, v in LISTING.items()}
    r = seller.post(
        "/api/store/create",
        data=form,
        files={"image": ("gloves.png", b"\x89PNG first", "image/png")},
    )
    assert r.status_code == 201, r.text
    post = r.json()["post"]
    assert post["price"] == 55
    assert post["image"].startswith(f"postings/{accounts['seller']}/")
    assert post["image"].endswith("-gloves.png")
    assert post["image_url"] == f"https://img.laxbay.com/{post['image']}"
    assert bucket.objects[post["image"]] == ("image/png", b"\x89PNG first")

    # blank fields in an edit form leave the stored values alone
    r = seller.put(
        f"/api/store/posts/{post['id']}",
        data={"title": "", "price": "45"},
        files={"image": ("side.jpg", b"jpeg bytes", "image/jpeg")},
    )
    assert r.status_code == 200, r.text
    edited = r.json()
    assert edited["title"] == LISTING["title"]
    assert edited["price"] == 45
    assert edited["image"] != post["image"]
    assert bucket.objects[edited["image"]] == ("image/jpeg", b"jpeg bytes")

    # form without a file keeps the image
    r = seller.put(f"/api/store/posts/{post['id']}", data={"location": "Towson"})
    assert r.json()["image"] == edited["image"]
    assert r.json()["location"] == "Towson"


def test_json_create_still_accepted_alongside_forms(db, accounts, bucket):
    seller = signed_in(db, accounts["seller"])
    r = seller.post("/api/store/create", json=dict(LISTING, image="https://cdn.example.com/g.png"))
    assert r.status_code == 201, r.text
    assert r.json()["post"]["image_url"] == "https://cdn.example.com/g.png"
    assert bucket.objects == {}
