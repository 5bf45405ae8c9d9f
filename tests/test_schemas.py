# tests/test_schemas.py
import pytest
from pydantic import ValidationError

from laxbay.schemas import CATEGORIES, PostingCreate, PostingUpdate, RegisterRequest

VALID = {
    "title": "STX Surgeon Gloves",
    "description": "Lightly used",
    "price": 45,
    "category": "Gloves",
    "location": "Boston",
}


def test_valid_posting_keeps_category_verbatim():
    assert PostingCreate(**VALID).category == "Gloves"


@pytest.mark.parametrize("field,value", [
    ("price", -0.01),
    ("price", 100000.01),
    ("category", "gloves"),
    ("title", "x" * 121),
    ("location", "   "),
    ("description", "x" * 5001),
])
def test_invalid_postings(field, value):
    with pytest.raises(ValidationError):
        PostingCreate(**{**VALID, field: value})


def test_price_bounds_inclusive():
    assert PostingCreate(**{**VALID, "price": 0}).price == 0
    assert PostingCreate(**{**VALID, "price": 100000}).price == 100000


def test_partial_update_rules():
    assert PostingUpdate(price=10).model_dump(exclude_unset=True) == {"price": 10}
    with pytest.raises(ValidationError):
        PostingUpdate(category="Skates")


def test_whitelist():
    assert len(CATEGORIES) == 12
    assert "Mesh/Strings" in CATEGORIES


def test_register_password_length():
    data = dict(firstName="A", lastName="B", email="a@b.com", username="ab",
                password="short", address="1 St", city="Boston", zipCode="02101")
    with pytest.raises(ValidationError):
        RegisterRequest(**data)
    assert RegisterRequest(**{**data, "password": "longenough"}).username == "ab"
