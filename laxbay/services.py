# laxbay/services.py
"""Posting write operations: ownership checks and image normalization."""
from typing import Dict, Optional

from sqlalchemy.orm import Session

from . import crud, schemas, storage
from .auth import Identity
from .errors import NotFound, PermissionDenied, UpstreamError, ValidationFailed
from .models import Posting
from .utils import logger


def _image_value(username: str, image=None, image_data=None, upload: Optional[storage.ImageUpload] = None):
    """Object key or URL to store, or None for "no image given"."""
    if upload is not None:
        return storage.store_upload(username, upload)
    if image_data:
        return storage.store_data_url(username, image_data)
    if image:
        if storage.is_data_url(image):
            return storage.store_data_url(username, image)
        return image
    return None


def create_posting(db: Session, identity: Identity, payload: schemas.PostingCreate,
                   upload: Optional[storage.ImageUpload] = None) -> Posting:
    data = payload.model_dump(exclude={"image", "image_data"})
    data["image"] = _image_value(identity.username, payload.image, payload.image_data, upload)
    obj = crud.create_posting(db, identity.username, data)
    logger.info("Posting %s created by %s", obj.id, identity.username)
    return obj


def get_managed_posting(db: Session, identity: Identity, posting_id: int) -> Posting:
    obj = crud.get_posting(db, posting_id)
    if not obj:
        raise NotFound()
    if not identity.can_manage(obj.username):
        raise PermissionDenied("Not your post")
    return obj


def update_posting(db: Session, identity: Identity, posting_id: int, payload: schemas.PostingUpdate,
                   upload: Optional[storage.ImageUpload] = None) -> Posting:
    obj = get_managed_posting(db, identity, posting_id)
    updates: Dict = payload.model_dump(exclude_unset=True, exclude={"image", "image_data"})
    # a null field means "leave as is"
    updates = {k: v for k, v in updates.items() if v is not None}
    image = _image_value(obj.username, payload.image, payload.image_data, upload)
    if image is not None:
        updates["image"] = image
    obj = crud.update_posting(db, obj, updates)
    logger.info("Posting %s updated by %s (%s)", obj.id, identity.username, ", ".join(sorted(updates)) or "no changes")
    return obj


def delete_posting(db: Session, identity: Identity, posting_id: int) -> None:
    obj = get_managed_posting(db, identity, posting_id)
    crud.delete_posting(db, obj)
    logger.info("Posting %s deleted by %s", posting_id, identity.username)


def migrate_inline_images(db: Session, limit: int = 500) -> dict:
    """Move data-URL images stored in rows into object storage."""
    migrated, missed = [], []
    for obj in crud.postings_with_inline_images(db, limit=limit):
        try:
            key = storage.store_data_url(obj.username, obj.image)
        except (ValidationFailed, UpstreamError) as e:
            logger.warning("Image migration skipped posting %s: %s", obj.id, e)
            missed.append({"id": obj.id, "error": str(e)})
            continue
        crud.update_posting(db, obj, {"image": key})
        migrated.append(obj.id)
    return {
        "migrated_count": len(migrated),
        "migrated": migrated,
        "missed_count": len(missed),
        "missed": missed,
    }
