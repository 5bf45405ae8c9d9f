# tests/test_api.py
import json

from conftest import listing
from laxbay import services, storage
from laxbay.api.chat_routes import get_chat_service
from laxbay.auth import Identity, current_identity
from laxbay.chat import ChatService
from laxbay.errors import ConfigurationError, UpstreamError, UpstreamUnavailable
from laxbay.models import Posting


class FakeLLM:
    def __init__(self, error=None, mid_stream_error=None):
        self.error = error
        self.mid_stream_error = mid_stream_error

    def generate(self, prompt):
        if self.error:
            raise self.error
        return "Here you go."

    def stream(self, prompt):
        if self.error:
            raise self.error
        return self._chunks()

    def _chunks(self):
        yield "Here "
        if self.mid_stream_error:
            raise self.mid_stream_error
        yield "you go."


def use_service(client, keyword_hits=(), vector_hits=(), error=None, mid_stream_error=None):
    service = ChatService(
        lambda q, f, n: list(keyword_hits),
        lambda q, f, n: list(vector_hits),
        FakeLLM(error, mid_stream_error),
    )
    client.app.dependency_overrides[get_chat_service] = lambda: service
    return service


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/api/healthz").json() == {"status": "ok"}


def test_chat_info(client):
    body = client.get("/api/store/chat").json()
    assert body["ok"] is True
    assert body["model"]


def test_chat_reply(client):
    use_service(client, [listing(9, title="Warrior Evo Head", price=60, location="Denver")])
    r = client.post("/api/store/chat", json={"prompt": "heads under 80", "messages": [{"role": "user", "content": "hi"}]})
    assert r.status_code == 200
    body = r.json()
    assert body["text"] == "Here you go."
    assert body["filters"] == {"maxPrice": 80}
    assert body["usedItems"][0] == {
        "id": 9, "title": "Warrior Evo Head", "price": 60.0, "location": "Denver", "url": "/postdetails/9",
    }


def test_chat_requires_prompt(client):
    use_service(client)
    r = client.post("/api/store/chat", json={"prompt": ""})
    assert r.status_code == 400
    assert r.json()["detail"] == "prompt is required"


def test_chat_missing_credentials_is_500(client):
    use_service(client, error=ConfigurationError("Missing GOOGLE_API_KEY env var"))
    r = client.post("/api/store/chat", json={"prompt": "gloves"})
    assert r.status_code == 500


def test_chat_rate_limited_returns_retry_after(client):
    use_service(client, error=UpstreamUnavailable(retry_after=17))
    r = client.post("/api/store/chat", json={"prompt": "gloves"})
    assert r.status_code == 503
    assert r.headers["Retry-After"] == "17"
    assert r.json()["retryAfter"] == 17


def _events(text):
    return [json.loads(line[len("data: "):]) for line in text.splitlines() if line.startswith("data: ")]


def test_chat_stream_emits_chunks_then_done(client):
    use_service(client, [], [listing(4, title="Maverik Helmet", similarity=0.8)])
    r = client.post("/api/store/chat/stream", json={"prompt": "helmet in Boston"})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/event-stream")
    events = _events(r.text)
    assert [e["text"] for e in events[:-1]] == ["Here ", "you go."]
    assert events[-1]["done"] is True
    assert events[-1]["filters"] == {"location": "boston"}
    assert events[-1]["usedItems"][0]["id"] == 4


def test_chat_stream_failure_after_partial_text_ends_with_error_event(client):
    use_service(client, mid_stream_error=UpstreamError("chat error"))
    events = _events(client.post("/api/store/chat/stream", json={"prompt": "gloves"}).text)
    assert events[0] == {"text": "Here "}
    assert events[-1] == {"error": "chat error"}
    assert not any(e.get("done") for e in events)


def test_chat_stream_interruption_carries_retry_after(client):
    use_service(client, mid_stream_error=UpstreamUnavailable(retry_after=17))
    events = _events(client.post("/api/store/chat/stream", json={"prompt": "gloves"}).text)
    assert events[-1]["retryAfter"] == 17
    assert events[-1]["error"]


def test_create_requires_login(client):
    r = client.post("/api/store/create", json={
        "title": "Gloves", "description": "d", "price": 10, "category": "Gloves", "location": "Boston",
    })
    assert r.status_code == 401


def test_create_validation_is_400(client):
    client.app.dependency_overrides[current_identity] = lambda: Identity(1, "alice")
    r = client.post("/api/store/create", json={
        "title": "Gloves", "description": "d", "price": 10, "category": "Socks", "location": "Boston",
    })
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid category"
    r = client.post("/api/store/create", json={
        "title": "Gloves", "description": "d", "price": -1, "category": "Gloves", "location": "Boston",
    })
    assert r.json()["detail"] == "Invalid price"


def test_admin_routes_reject_regular_users(client):
    client.app.dependency_overrides[current_identity] = lambda: Identity(1, "alice")
    assert client.get("/api/store/admin/posts").status_code == 403
    client.app.dependency_overrides.clear()
    assert client.get("/api/store/admin/posts").status_code == 401


def test_presign_requires_image_content_type(client):
    client.app.dependency_overrides[current_identity] = lambda: Identity(1, "alice")
    r = client.post("/api/uploads/presign", json={"filename": "a.gif", "contentType": "image/gif"})
    assert r.status_code == 400


FORM = {"title": "Gloves", "description": "d", "price": "10", "category": "Gloves", "location": "Boston"}


def test_form_create_validation_is_400(client):
    client.app.dependency_overrides[current_identity] = lambda: Identity(1, "alice")
    r = client.post("/api/store/create", data=dict(FORM, category="Socks"))
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid category"
    r = client.post("/api/store/create", data=dict(FORM, price="ten"))
    assert r.json()["detail"] == "Invalid price"
    r = client.post("/api/store/create", data=dict(FORM, title=""))
    assert r.json()["detail"] == "All fields must be provided"


def test_form_create_rejects_bad_image_files(client):
    client.app.dependency_overrides[current_identity] = lambda: Identity(1, "alice")
    r = client.post("/api/store/create", data=FORM, files={"image": ("a.gif", b"GIF89a", "image/gif")})
    assert r.status_code == 400
    assert r.json()["detail"] == "Only PNG, JPEG or WEBP images allowed"
    big = b"\0" * (storage.MAX_IMAGE_BYTES + 1)
    r = client.post("/api/store/create", data=FORM, files={"image": ("a.png", big, "image/png")})
    assert r.status_code == 400
    assert r.json()["detail"] == "Image exceeds 5 MB"


def test_form_create_hands_file_to_service(client, monkeypatch):
    client.app.dependency_overrides[current_identity] = lambda: Identity(1, "alice")
    seen = {}

    def fake_create(db, identity, payload, upload=None):
        seen["payload"], seen["upload"] = payload, upload
        return Posting(id=7, username=identity.username, image="postings/alice/x.png", **payload.model_dump(exclude={"image", "image_data"}))

    monkeypatch.setattr(services, "create_posting", fake_create)
    r = client.post("/api/store/create", data=FORM, files={"image": ("g.png", b"png", "image/png")})
    assert r.status_code == 201, r.text
    assert seen["payload"].price == 10
    assert seen["upload"] == storage.ImageUpload("g.png", "image/png", b"png")
    assert r.json()["post"]["id"] == 7


def test_unparseable_body_is_400(client):
    client.app.dependency_overrides[current_identity] = lambda: Identity(1, "alice")
    r = client.post("/api/store/create", content=b"not json", headers={"content-type": "text/plain"})
    assert r.status_code == 400
