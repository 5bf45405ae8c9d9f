# laxbay/crud.py
"""Listing Store and account persistence helpers.

`posting_conditions` is the one place structured filters become SQL; the
search endpoint and both chat retrievers build on it, so placeholders are
never composed by hand.
"""
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy import and_, or_, func
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional

from .models import Posting, PostingEmbedding, User


def posting_conditions(
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    location: Optional[str] = None,
    category: Optional[str] = None,
    category_exact: bool = False,
) -> List:
    conds = []
    if min_price is not None:
        conds.append(Posting.price >= min_price)
    if max_price is not None:
        conds.append(Posting.price <= max_price)
    if location:
        conds.append(Posting.location.icontains(location, autoescape=True))
    if category:
        if category_exact:
            conds.append(Posting.category == category)
        else:
            conds.append(Posting.category.icontains(category, autoescape=True))
    return conds


def text_match(term: str):
    return or_(
        Posting.title.icontains(term, autoescape=True),
        Posting.description.icontains(term, autoescape=True),
    )


# postings

def create_posting(db: Session, username: str, data: Dict[str, Any]) -> Posting:
    obj = Posting(username=username, **data)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


def get_posting(db: Session, posting_id: int) -> Optional[Posting]:
    return db.get(Posting, posting_id)


def list_postings(db: Session, skip: int = 0, limit: int = 20, username: Optional[str] = None):
    q = db.query(Posting)
    if username is not None:
        q = q.filter(Posting.username == username)
    return q.order_by(Posting.created_at.desc(), Posting.id.desc()).offset(skip).limit(limit).all()


def list_postings_by_id(db: Session, skip: int = 0, limit: int = 50):
    return db.query(Posting).order_by(Posting.id.desc()).offset(skip).limit(limit).all()


def search_postings(
    db: Session,
    query: str = "",
    filters: Optional[Dict[str, Any]] = None,
    limit: int = 100,
):
    q = db.query(Posting)
    if query:
        q = q.filter(text_match(query))
    conds = posting_conditions(**(filters or {}))
    if conds:
        q = q.filter(and_(*conds))
    return q.order_by(Posting.created_at.desc()).limit(limit).all()


def update_posting(db: Session, obj: Posting, updates: Dict[str, Any]) -> Posting:
    for k, v in updates.items():
        setattr(obj, k, v)
    db.commit()
    db.refresh(obj)
    return obj


def delete_posting(db: Session, obj: Posting) -> None:
    db.delete(obj)
    db.commit()


def postings_with_inline_images(db: Session, limit: int = 500):
    return (
        db.query(Posting)
        .filter(Posting.image.like("data:%"))
        .order_by(Posting.id.asc())
        .limit(limit)
        .all()
    )


# users

def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(func.lower(User.username) == username.strip().lower()).first()


def account_exists(db: Session, email: str, username: str) -> bool:
    q = db.query(User.id).filter(
        or_(
            func.lower(User.email) == email.strip().lower(),
            func.lower(User.username) == username.strip().lower(),
        )
    )
    return db.query(q.exists()).scalar()


def create_user(db: Session, data: Dict[str, Any]) -> User:
    obj = User(**data)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


# embedding index

def upsert_embedding(db: Session, posting_id: int, vector: List[float]) -> None:
    table = PostingEmbedding.__table__
    stmt = pg_insert(table).values(posting_id=posting_id, embedding=vector)
    stmt = stmt.on_conflict_do_update(
        index_elements=["posting_id"],
        set_={"embedding": stmt.excluded.embedding, "updated_at": func.now()},
    )
    db.execute(stmt)
    db.commit()


def postings_needing_embedding(db: Session, stale_only: bool = True, limit: Optional[int] = None):
    """Postings with no embedding, or one older than the posting itself.

    With `stale_only=False` every posting is returned.
    """
    q = db.query(Posting).outerjoin(PostingEmbedding, PostingEmbedding.posting_id == Posting.id)
    if stale_only:
        q = q.filter(
            or_(
                PostingEmbedding.posting_id.is_(None),
                PostingEmbedding.updated_at < Posting.updated_at,
            )
        )
    q = q.order_by(Posting.id.asc())
    if limit:
        q = q.limit(limit)
    return q.all()
