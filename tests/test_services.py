# tests/test_services.py
from types import SimpleNamespace

import pytest
from laxbay import services
from laxbay.auth import Identity
from laxbay.errors import NotFound, PermissionDenied


class FakeSession:
    def __init__(self, *postings):
        self.postings = {p.id: p for p in postings}

    def get(self, model, posting_id):
        return self.postings.get(posting_id)


def test_managed_posting_ownership():
    post = SimpleNamespace(id=5, username="alice")
    db = FakeSession(post)
    assert services.get_managed_posting(db, Identity(1, "alice"), 5) is post
    assert services.get_managed_posting(db, Identity(9, "root", "admin"), 5) is post
    with pytest.raises(PermissionDenied) as exc:
        services.get_managed_posting(db, Identity(2, "bob"), 5)
    assert exc.value.detail == "Not your post"


def test_missing_posting_is_not_found():
    with pytest.raises(NotFound) as exc:
        services.get_managed_posting(FakeSession(), Identity(1, "alice"), 404)
    assert exc.value.status_code == 404
