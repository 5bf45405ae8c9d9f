# laxbay/api/admin_routes.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from .. import crud, schemas, services
from ..auth import require_admin
from ..db import get_db
from ..embeddings import EmbeddingClient, reindex

router = APIRouter(prefix="/api/store/admin", dependencies=[Depends(require_admin)])


@router.get("/posts", response_model=List[schemas.PostingOut])
def all_posts(
    limit: int = Query(50, ge=1),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    return crud.list_postings_by_id(db, skip=offset, limit=min(limit, 200))


@router.post("/reindex")
def reindex_embeddings(payload: Optional[schemas.ReindexRequest] = None, db: Session = Depends(get_db)):
    stale_only = payload.stale_only if payload else True
    return reindex(db, EmbeddingClient(), stale_only=stale_only)


@router.post("/migrate-images")
def migrate_images(db: Session = Depends(get_db)):
    return services.migrate_inline_images(db)
