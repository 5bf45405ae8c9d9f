# laxbay/api/routes.py
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile
from typing import List, Optional
from .. import config, crud, db as database, schemas, services, storage
from ..auth import Identity, require_user
from ..db import get_db
from ..embeddings import refresh_posting_embedding
from ..errors import ValidationFailed
from ..utils import logger

router = APIRouter()


@router.get("/health")
@router.get("/api/healthz")
def health():
    return {"status": "ok"}


@router.get("/healthz")
def health_db():
    try:
        database.ping()
    except SQLAlchemyError as e:
        logger.warning("Health check: database unreachable: %s", e)
        return {"status": "degraded", "db": "error"}
    return {"status": "ok", "db": "ok"}


def _embed_later(background_tasks: BackgroundTasks, posting_id: int):
    if config.EMBED_ON_WRITE:
        background_tasks.add_task(refresh_posting_embedding, posting_id)


FORM_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


async def _read_posting(request: Request, model):
    """Parse a posting sent as JSON or as a form with an optional `image` file.

    Returns the validated payload and the uploaded file, if any. Blank form
    fields count as not sent.
    """
    upload = None
    if request.headers.get("content-type", "").startswith(FORM_TYPES):
        form = await request.form()
        data = {}
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if key == "image" and value.filename:
                    # one byte over the cap is enough to reject it
                    body = await value.read(storage.MAX_IMAGE_BYTES + 1)
                    upload = storage.ImageUpload(value.filename, value.content_type or "", body)
            elif value != "":
                data[key] = value
    else:
        try:
            data = await request.json()
        except ValueError:
            raise ValidationFailed("Request body must be JSON or a multipart form")
    try:
        return model.model_validate(data), upload
    except ValidationError as e:
        raise RequestValidationError(e.errors())


async def posting_create_body(request: Request):
    return await _read_posting(request, schemas.PostingCreate)


async def posting_update_body(request: Request):
    return await _read_posting(request, schemas.PostingUpdate)


@router.get("/api/store/listings", response_model=List[schemas.PostingOut])
def listings(
    limit: int = Query(20, ge=1),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    return crud.list_postings(db, skip=offset, limit=min(limit, 100))


@router.get("/api/store/listings/{posting_id}", response_model=schemas.PostingOut)
def get_listing(posting_id: int, db: Session = Depends(get_db)):
    obj = crud.get_posting(db, posting_id)
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")
    return obj


@router.get("/api/store/search", response_model=List[schemas.PostingOut])
def search(
    query: str = "",
    category: Optional[str] = None,
    location: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    db: Session = Depends(get_db)
):
    filters = {
        "min_price": min_price,
        "max_price": max_price,
        "location": location,
        "category": category,
        "category_exact": True,
    }
    return crud.search_postings(db, query=query.strip(), filters=filters)


@router.post("/api/store/create", response_model=schemas.PostingCreated, status_code=201)
def create_posting(
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(require_user),
    body=Depends(posting_create_body),
    db: Session = Depends(get_db)
):
    payload, upload = body
    obj = services.create_posting(db, identity, payload, upload)
    _embed_later(background_tasks, obj.id)
    return {"message": "Post created successfully", "post": obj}


@router.get("/api/store/user/posts", response_model=List[schemas.PostingOut])
def my_posts(identity: Identity = Depends(require_user), db: Session = Depends(get_db)):
    return crud.list_postings(db, limit=500, username=identity.username)


@router.get("/api/store/posts/{posting_id}", response_model=schemas.PostingOut)
def get_post(posting_id: int, identity: Identity = Depends(require_user), db: Session = Depends(get_db)):
    return services.get_managed_posting(db, identity, posting_id)


@router.put("/api/store/posts/{posting_id}", response_model=schemas.PostingOut)
def update_post(
    posting_id: int,
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(require_user),
    body=Depends(posting_update_body),
    db: Session = Depends(get_db)
):
    payload, upload = body
    obj = services.update_posting(db, identity, posting_id, payload, upload)
    _embed_later(background_tasks, obj.id)
    return obj


@router.delete("/api/store/posts/{posting_id}", status_code=204)
def delete_post(posting_id: int, identity: Identity = Depends(require_user), db: Session = Depends(get_db)):
    services.delete_posting(db, identity, posting_id)
